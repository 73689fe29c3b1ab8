import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence

from rich.markup import escape
from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical, VerticalScroll
from textual.css.query import NoMatches
from textual.screen import ModalScreen
from textual.widgets import Button, Footer, Header, Label, LoadingIndicator, Markdown, Tree

from depscope.__version__ import __version__
from depscope.build import detect_provider
from depscope.config import load_settings
from depscope.core.audit import AuditTask, create_client
from depscope.core.model import Dependency, PackageCoordinate, Vulnerability
from depscope.errors import DepscopeError
from depscope.report.severity import format_score, get_assessment, style_for

# Log Configuration
logging.basicConfig(
    filename="debug.log",
    level=logging.DEBUG,
    filemode="w",
    format="%(asctime)s - %(levelname)s - %(message)s",
)


@dataclass
class BrowserNode:
    """Presentation node enriched with its report, as shown in the tree widget."""

    dependency: Dependency
    coordinate: Optional[PackageCoordinate] = None
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    children: List["BrowserNode"] = field(default_factory=list)

    @property
    def vulnerable(self) -> bool:
        return bool(self.vulnerabilities)

    def has_vulnerable_descendant(self) -> bool:
        return self.vulnerable or any(child.has_vulnerable_descendant() for child in self.children)


def build_nodes(dependencies: Sequence[Dependency], coordinates, reports) -> List[BrowserNode]:
    nodes = []
    for dependency in dependencies:
        coordinate = coordinates.get(dependency.id)
        report = reports.get(coordinate) if coordinate is not None else None
        nodes.append(
            BrowserNode(
                dependency,
                coordinate,
                report.sorted_vulnerabilities() if report is not None else [],
                build_nodes(dependency.children, coordinates, reports),
            )
        )
    return nodes


def build_label(dependency: Dependency, vulnerabilities: Sequence[Vulnerability]) -> str:
    safe_id = escape(dependency.id)
    repeated = " [dim](*)[/]" if dependency.repeated else ""

    child_count = len(dependency.children)
    count_suffix = f" [dim]↳[/] {child_count}" if child_count > 0 else ""

    if vulnerabilities:
        worst = vulnerabilities[0].cvss_score
        style = style_for(worst)
        summary = f"{len(vulnerabilities)} vulnerabilities, worst {get_assessment(worst)}"
        return f"[bold {style}](!) {safe_id}[/]{repeated} [{style}]({summary})[/]{count_suffix}"
    return f"[green](•) {safe_id}[/]{repeated}{count_suffix}"


class VulnerabilityScreen(ModalScreen):
    """Modal to display vulnerability details in a clean view."""

    DEFAULT_CSS = """
    VulnerabilityScreen {
        align: center middle;
        background: rgba(0, 0, 0, 0.8);
    }
    #dialog {
        padding: 0 1;
        width: 85%;
        height: 85%;
        border: heavy $error;
        background: $surface;
        layout: vertical;
    }
    #title {
        text-align: center;
        text-style: bold;
        background: $error;
        color: white;
        width: 100%;
        padding: 1;
    }
    #content-scroll {
        height: 1fr;
        margin: 1 0;
        overflow-y: auto;
        scrollbar-gutter: stable;
    }
    #close-btn {
        width: 100%;
        dock: bottom;
    }
    """

    def __init__(self, coordinate: PackageCoordinate, vulnerabilities: List[Vulnerability]) -> None:
        super().__init__()
        self.coordinate = coordinate
        self.vulnerabilities = vulnerabilities

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(f"[!] {escape(self.coordinate.gav)}", id="title"),
            VerticalScroll(
                Markdown(build_report(self.vulnerabilities)),
                id="content-scroll"
            ),
            Button("Close (Esc)", variant="error", id="close-btn"),
            id="dialog",
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss()

    def key_escape(self) -> None:
        self.dismiss()


def build_report(vulnerabilities: Sequence[Vulnerability]) -> str:
    md_output = []

    for vulnerability in vulnerabilities:
        md_output.append(f"# (X) {vulnerability.id}\n")
        md_output.append(f"**{vulnerability.title or 'Untitled'}** {format_score(vulnerability.cvss_score)}\n")
        md_output.append(f"{vulnerability.description or '_No technical details provided._'}\n")

        if vulnerability.cvss_vector:
            md_output.append(f"`{vulnerability.cvss_vector}`\n")

        md_output.append("### Links\n")
        if vulnerability.reference:
            md_output.append(f"- **OSS Index**: [{vulnerability.reference}]({vulnerability.reference})")
        if vulnerability.cve:
            url = f"https://nvd.nist.gov/vuln/detail/{vulnerability.cve}"
            md_output.append(f"- **{vulnerability.cve}**: [{url}]({url})")
        for url in vulnerability.external_references:
            md_output.append(f"- **Advisory**: [{url}]({url})")

        md_output.append("\n---\n")

    if not md_output:
        return "No vulnerability data found."

    return "\n".join(md_output)


class DepscopeApp(App):
    TITLE = "depscope"
    SUB_TITLE = f"v{__version__}"

    DEFAULT_CSS = """
    Screen { layout: vertical; }

    #info-bar {
        height: 3;
        dock: top;
        background: $surface;
        border-bottom: solid $primary;
        align: left middle;
        padding: 0 1;
    }

    .info-label {
        width: auto;
        height: 1;
        padding: 0 2;
        color: $text;
    }

    #tree-container {
        height: 1fr;
        border: none;
        margin: 0 1;
    }
    Tree { padding: 1; background: $surface; }

    #loading-container { height: 100%; align: center middle; }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("j", "cursor_down", "Down", show=False),
        Binding("k", "cursor_up", "Up", show=False),
        Binding("l", "expand_node", "Expand"),
        Binding("h", "collapse_node", "Collapse"),
        Binding("space", "toggle_node", "Toggle"),
        Binding("enter", "show_details", "Details"),
        Binding("v", "toggle_filter", "Vuln Only"),
    ]

    show_only_vulnerable: bool = False
    total_pkgs: int = 0
    vuln_pkgs: int = 0
    provider_name: str = "..."

    def __init__(self, directory: Path = Path(".")) -> None:
        super().__init__()
        self.directory = directory

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)

        with Horizontal(id="info-bar"):
            yield Label(f"[b]Context:[/b] [cyan]{self.provider_name}[/]", id="lbl-context", classes="info-label")
            yield Label(f"[b]Total:[/b] [blue]{self.total_pkgs}[/]", id="lbl-total", classes="info-label")
            yield Label(f"[b]Vuln:[/b] [red]{self.vuln_pkgs}[/]", id="lbl-vuln", classes="info-label")
            yield Label("[b]Safe:[/b] [green]0[/]", id="lbl-safe", classes="info-label")

        with Container(id="main-area"):
            with Container(id="loading-container"):
                yield LoadingIndicator()
                yield Label("Initializing depscope...", id="status-label")

            with Container(id="tree-container"):
                yield Tree("Root", id="dep-tree")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#tree-container").display = False
        self.scan_project()

    # --- ACTIONS ---

    def action_cursor_down(self) -> None:
        self.query_one("#dep-tree").action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one("#dep-tree").action_cursor_up()

    def action_expand_node(self) -> None:
        tree = self.query_one("#dep-tree")
        if tree.cursor_node:
            tree.cursor_node.expand()

    def action_collapse_node(self) -> None:
        tree = self.query_one("#dep-tree")
        node = tree.cursor_node
        if node:
            if node.is_expanded:
                node.collapse()
            elif node.parent:
                tree.select_node(node.parent)
                node.parent.collapse()

    def on_tree_node_selected(self, event: Tree.NodeSelected) -> None:
        node_data = event.node.data
        if isinstance(node_data, BrowserNode) and node_data.vulnerable:
            self.push_screen(VulnerabilityScreen(node_data.coordinate, node_data.vulnerabilities))
        else:
            self.notify("No vulnerabilities reported for this dependency.", severity="information")

    def action_toggle_filter(self) -> None:
        self.show_only_vulnerable = not self.show_only_vulnerable

        status = "enabled" if self.show_only_vulnerable else "disabled"
        severity = "warning" if self.show_only_vulnerable else "information"
        msg = "Showing vulnerable dependencies only." if self.show_only_vulnerable else "Showing all dependencies."

        self.notify(f"Filter {status}: {msg}", severity=severity)

        root_data = self.query_one("#dep-tree").root.data
        if root_data:
            self.render_tree(root_data)

    # --- LOGIC ---

    def update_progress(self, current: int, total: int) -> None:
        self.update_status(f"Scanning security... (Batch {current} of {total})")

    def update_status(self, msg: str) -> None:
        try:
            self.query_one("#status-label", Label).update(msg)
        except NoMatches:
            logging.debug(f"Status label gone, dropping status: {msg}")

    def update_dashboard_ui(self) -> None:
        safe_count = self.total_pkgs - self.vuln_pkgs
        self.query_one("#lbl-context", Label).update(f"[b]Context:[/b] [cyan]{self.provider_name}[/]")
        self.query_one("#lbl-total", Label).update(f"[b]Total:[/b] [blue]{self.total_pkgs}[/]")
        self.query_one("#lbl-vuln", Label).update(f"[b]Vuln:[/b] [red]{self.vuln_pkgs}[/]")
        self.query_one("#lbl-safe", Label).update(f"[b]Safe:[/b] [green]{safe_count}[/]")

    def show_error(self, message: str) -> None:
        self.query_one("#status-label", Label).update(f"[bold red]Fatal Error:[/]\n{escape(message)}")
        self.query_one("LoadingIndicator").display = False

    @work(thread=False)
    async def scan_project(self) -> None:
        try:
            logging.info("Worker started.")
            self.update_status("Detecting project...")

            provider = detect_provider(str(self.directory))
            if not provider:
                raise DepscopeError("No supported project found.")

            self.provider_name = provider.name
            self.update_dashboard_ui()

            logging.info(f"Provider: {provider.name}")
            self.update_status(f"Resolving dependencies ({provider.name})...")

            project, table = provider.load(self.directory)
            settings = load_settings(table)
            client = create_client(settings)
            tree, coordinates = AuditTask(project, settings, client=client).collect()

            unique = list(dict.fromkeys(coordinates.values()))
            self.total_pkgs = len(unique)
            self.update_dashboard_ui()

            reports = await client.request_reports(unique, on_progress=self.update_progress)
            reports = settings.exclusions.apply(reports)

            self.update_status("Rendering tree...")
            self.vuln_pkgs = sum(1 for report in reports.values() if report.vulnerabilities)
            self.update_dashboard_ui()

            root = BrowserNode(
                Dependency(project.name, True, tuple(tree)),
                children=build_nodes(tree, coordinates, reports),
            )
            self.render_tree(root)

        except Exception as e:
            logging.exception("Fatal error in worker:")
            self.show_error(str(e))

    def render_tree(self, root_node: BrowserNode) -> None:
        tree = self.query_one("#dep-tree")
        tree.clear()
        tree.root.data = root_node
        tree.root.label = f"📂 {escape(root_node.dependency.id)}"
        tree.root.expand()

        def add_nodes(tree_node, data_node: BrowserNode):
            for child in data_node.children:
                if self.show_only_vulnerable and not child.has_vulnerable_descendant():
                    continue

                label = build_label(child.dependency, child.vulnerabilities)
                new_node = tree_node.add(label, expand=self.show_only_vulnerable, data=child)
                add_nodes(new_node, child)

        add_nodes(tree.root, root_node)
        self.query_one("#loading-container").display = False
        self.query_one("#tree-container").display = True
        tree.focus()
