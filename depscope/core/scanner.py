import asyncio
import logging
import math
from typing import Callable, Dict, List, Optional

import httpx

from depscope.__version__ import __version__
from depscope.core.model import PackageCoordinate, Vulnerability, VulnerabilityReport
from depscope.errors import ConnectivityError, CredentialsError, ProviderError

OSS_INDEX_URL = "https://ossindex.sonatype.org/api/v3/component-report"
BATCH_SIZE = 128
CONCURRENT_BATCHES = 8

ProgressCallback = Callable[[int, int], None]


def _parse_vulnerability(data: Dict) -> Vulnerability:
    score = data.get("cvssScore")
    return Vulnerability(
        id=data.get("id") or data.get("displayName") or "Unknown",
        title=data.get("title", ""),
        description=data.get("description", ""),
        cvss_score=float(score) if score is not None else None,
        cvss_vector=data.get("cvssVector"),
        cve=data.get("cve"),
        cwe=data.get("cwe"),
        reference=data.get("reference", ""),
        external_references=tuple(data.get("externalReferences", [])),
        version_ranges=tuple(data.get("versionRanges", [])),
    )


class OssIndexClient:
    """Async OSS Index client, requests go out in concurrent batches."""

    def __init__(
        self,
        username: str = "",
        token: str = "",
        url: str = OSS_INDEX_URL,
        timeout: float = 45.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self.auth = (username, token) if username and token else None
        self.timeout = timeout
        self.transport = transport

    def fetch_reports(self, coordinates: List[PackageCoordinate]) -> Dict[PackageCoordinate, VulnerabilityReport]:
        return asyncio.run(self.request_reports(coordinates))

    async def request_reports(
        self,
        coordinates: List[PackageCoordinate],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[PackageCoordinate, VulnerabilityReport]:
        coordinates = list(dict.fromkeys(coordinates))
        logging.info(f"Requesting reports for {len(coordinates)} components (Async Mode)...")
        if not coordinates:
            return {}

        num_batches = math.ceil(len(coordinates) / BATCH_SIZE)
        semaphore = asyncio.Semaphore(CONCURRENT_BATCHES)
        limits = httpx.Limits(max_keepalive_connections=CONCURRENT_BATCHES, max_connections=CONCURRENT_BATCHES * 2)
        headers = {"User-Agent": f"depscope/{__version__}"}

        async with httpx.AsyncClient(
            timeout=self.timeout, limits=limits, auth=self.auth, headers=headers, transport=self.transport
        ) as client:
            tasks = []
            for i in range(num_batches):
                batch = coordinates[i * BATCH_SIZE:(i + 1) * BATCH_SIZE]
                tasks.append(self._process_batch_safe(client, semaphore, batch, on_progress, i + 1, num_batches))
            results = await asyncio.gather(*tasks)

        reports = {}
        for result in results:
            reports.update(result)

        # Components unknown to OSS Index get an empty report
        for coordinate in coordinates:
            reports.setdefault(coordinate, VulnerabilityReport(coordinate))
        return reports

    async def _process_batch_safe(self, client, semaphore, batch, on_progress, current, total):
        async with semaphore:
            result = await self._process_batch(client, batch)
            if on_progress:
                on_progress(current, total)
            return result

    async def _process_batch(
        self, client: httpx.AsyncClient, batch: List[PackageCoordinate]
    ) -> Dict[PackageCoordinate, VulnerabilityReport]:
        try:
            response = await client.post(self.url, json={"coordinates": [c.purl for c in batch]})
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise ConnectivityError(f"Connection to OSS Index failed, check your internet status: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"OSS Index request failed: {e}") from e

        if response.status_code in (401, 403):
            raise CredentialsError(
                f"Connection to OSS Index failed, check your credentials: HTTP {response.status_code}"
            )
        if response.status_code != 200:
            logging.error(f"OSS Index API Error {response.status_code}: {response.text}")
            raise ProviderError(f"OSS Index answered HTTP {response.status_code}")

        by_purl = {}
        for coordinate in batch:
            by_purl[coordinate.purl] = coordinate
            by_purl.setdefault(coordinate.purl.lower(), coordinate)

        local_map = {}
        for entry in response.json():
            purl = entry.get("coordinates", "")
            coordinate = by_purl.get(purl) or by_purl.get(purl.lower())
            if coordinate is None:
                logging.warning(f"Ignoring report for unrequested component {purl}")
                continue
            local_map[coordinate] = VulnerabilityReport(
                coordinate,
                tuple(_parse_vulnerability(v) for v in entry.get("vulnerabilities", [])),
                entry.get("description", ""),
                entry.get("reference", ""),
            )
        return local_map


class SimulatedClient:
    """Deterministic stand-in for OssIndexClient, no network involved."""

    def __init__(self, vulnerability_found: bool = False) -> None:
        self.vulnerability_found = vulnerability_found

    def fetch_reports(self, coordinates: List[PackageCoordinate]) -> Dict[PackageCoordinate, VulnerabilityReport]:
        logging.info(f"Simulating reports for {len(coordinates)} components...")
        reports = {}
        for coordinate in coordinates:
            vulnerabilities = ()
            if self.vulnerability_found:
                vulnerabilities = (
                    Vulnerability(
                        id=f"SIMULATED-{coordinate.name}",
                        title="Simulated",
                        cvss_score=4.0,
                        reference="http://test/123",
                    ),
                )
            reports[coordinate] = VulnerabilityReport(coordinate, vulnerabilities)
        return reports

    async def request_reports(self, coordinates, on_progress=None):
        reports = self.fetch_reports(coordinates)
        if on_progress:
            on_progress(1, 1)
        return reports
