"""OSDBuilder build inventory."""

from __future__ import annotations

from osimage_promoter.domain import BuildRecord, BuildSource
from osimage_promoter.exceptions import PlatformCommandError, SetupError
from osimage_promoter.logging import LoggerFactory
from osimage_promoter.services.powershell import PowerShell

log = LoggerFactory.for_platform()

MODULE_NAME = "OSDBuilder"

_RECORD_SELECT = (
    "Select-Object Name, UBR, FullName, "
    "@{n='ModifiedTime';e={$_.ModifiedTime.ToString('s')}}"
)

_CMDLETS = {
    BuildSource.OSBUILDS: "Get-OSBuilds",
    BuildSource.OSMEDIA: "Get-OSMedia",
}


def _version_tuple(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split(".") if part.isdigit())


class OSDBuilderInventory:
    """Reads OSBuilds and OSMedia records through the OSDBuilder module."""

    def __init__(self, shell: PowerShell, min_version: str = "0"):
        self.shell = shell
        self.min_version = min_version

    def ensure_available(self) -> str:
        """Return the installed module version.

        Raises:
            SetupError: If the module is missing or older than min_version
        """
        script = (
            f"Get-Module -ListAvailable {MODULE_NAME} | Sort-Object Version -Descending "
            "| Select-Object -First 1 @{n='Version';e={$_.Version.ToString()}}"
        )
        try:
            records = self.shell.run_json(script, "check OSDBuilder module")
        except PlatformCommandError as exc:
            raise SetupError(MODULE_NAME, exc.details) from exc
        if not records:
            raise SetupError(MODULE_NAME, "module is not installed")
        version = str(records[0].get("Version") or "")
        if _version_tuple(version) < _version_tuple(self.min_version):
            raise SetupError(
                MODULE_NAME, f"version {version} is older than {self.min_version}"
            )
        log.debug(f"{MODULE_NAME} {version} available")
        return version

    def _list(self, source: BuildSource) -> list[BuildRecord]:
        cmdlet = _CMDLETS[source]
        records = self.shell.run_json(
            f"Import-Module {MODULE_NAME}; {cmdlet} | {_RECORD_SELECT}", cmdlet
        )
        builds = []
        for record in records:
            try:
                builds.append(BuildRecord.from_inventory_dict(record, source))
            except (KeyError, ValueError) as exc:
                log.warning(f"Ignoring unreadable {source.value} record {record}: {exc}")
        log.debug(f"{cmdlet} returned {len(builds)} records")
        return builds

    def list_builds(self) -> list[BuildRecord]:
        return self._list(BuildSource.OSBUILDS)

    def list_media(self) -> list[BuildRecord]:
        return self._list(BuildSource.OSMEDIA)

    def list_records(self, use_media: bool) -> list[BuildRecord]:
        return self.list_media() if use_media else self.list_builds()
