"""Configuration Manager site operations used by the pipeline."""

from __future__ import annotations

from pathlib import Path

from osimage_promoter.domain import ContentKind, PackageRecord
from osimage_promoter.exceptions import PlatformCommandError, SetupError
from osimage_promoter.logging import LoggerFactory
from osimage_promoter.services.powershell import PowerShell, quote

log = LoggerFactory.for_platform()

MODULE_PATH = r"$env:SMS_ADMIN_UI_PATH\..\ConfigurationManager.psd1"

# Noun used by the Get-/New- cmdlets and the parameter name used to pass a
# package ID to Start-CMContentDistribution / Update-CMDistributionPoint.
_NOUNS = {
    ContentKind.IMAGE: ("CMOperatingSystemImage", "OperatingSystemImageId"),
    ContentKind.UPGRADE_PACKAGE: (
        "CMOperatingSystemUpgradePackage",
        "OperatingSystemUpgradePackageId",
    ),
}

_PACKAGE_SELECT = (
    "Select-Object PackageID, Name, Version, PkgSourcePath, "
    "@{n='SourceDate';e={if ($_.SourceDate) { $_.SourceDate.ToString('s') }}}"
)

IMAGE_INDEX = 1


class ConfigMgrSite:
    """Operations on one Configuration Manager site through its PowerShell module."""

    def __init__(self, shell: PowerShell, site_code: str):
        self.shell = shell
        self.site_code = site_code

    def _preamble(self) -> str:
        return f'Import-Module "{MODULE_PATH}"; Set-Location {quote(self.site_code + ":")}; '

    def _run(self, script: str, operation: str, target: str | None = None) -> str:
        try:
            return self.shell.run(self._preamble() + script, operation)
        except PlatformCommandError as exc:
            raise PlatformCommandError(operation, exc.details, target) from exc

    def _run_json(self, script: str, operation: str, target: str | None = None):
        try:
            return self.shell.run_json(self._preamble() + script, operation)
        except PlatformCommandError as exc:
            raise PlatformCommandError(operation, exc.details, target) from exc

    def ensure_available(self) -> None:
        """Check that the console module loads and the site drive exists.

        Raises:
            SetupError: If the ConfigurationManager module cannot be used
        """
        try:
            self._run("Get-CMSite | Out-Null", "connect to site", self.site_code)
        except PlatformCommandError as exc:
            raise SetupError("ConfigurationManager", exc.details) from exc

    def list_packages(self, kind: ContentKind) -> list[PackageRecord]:
        noun, _ = _NOUNS[kind]
        records = self._run_json(f"Get-{noun} | {_PACKAGE_SELECT}", f"Get-{noun}")
        packages = []
        for record in records:
            try:
                packages.append(PackageRecord.from_platform_dict(record, kind))
            except (KeyError, ValueError) as exc:
                log.warning(f"Ignoring unreadable {kind.value} record {record}: {exc}")
        return packages

    def create_package(
        self,
        kind: ContentKind,
        name: str,
        path: Path,
        version: str,
        description: str,
    ) -> PackageRecord:
        noun, _ = _NOUNS[kind]
        script = (
            f"New-{noun} -Name {quote(name)} -Path {quote(path)} "
            f"-Version {quote(version)} -Description {quote(description)} "
            f"| {_PACKAGE_SELECT}"
        )
        records = self._run_json(script, f"New-{noun}", name)
        if not records:
            raise PlatformCommandError(f"New-{noun}", "no package was returned", name)
        return PackageRecord.from_platform_dict(records[0], kind)

    def start_distribution(
        self, kind: ContentKind, package: PackageRecord, group: str
    ) -> None:
        _, id_parameter = _NOUNS[kind]
        script = (
            f"Start-CMContentDistribution -{id_parameter} {quote(package.package_id)} "
            f"-DistributionPointGroupName {quote(group)}"
        )
        self._run(script, "Start-CMContentDistribution", package.name)

    def redistribute(self, kind: ContentKind, package: PackageRecord) -> None:
        _, id_parameter = _NOUNS[kind]
        script = f"Update-CMDistributionPoint -{id_parameter} {quote(package.package_id)}"
        self._run(script, "Update-CMDistributionPoint", package.name)

    def set_task_sequence_image(
        self,
        task_sequence: str,
        step: str,
        package: PackageRecord,
        index: int = IMAGE_INDEX,
    ) -> None:
        script = (
            f"$image = Get-CMOperatingSystemImage -Id {quote(package.package_id)}; "
            f"Set-CMTaskSequenceStepApplyOperatingSystem -TaskSequenceName {quote(task_sequence)} "
            f"-StepName {quote(step)} -ImagePackage $image -ImagePackageIndex {index}"
        )
        self._run(
            script,
            "Set-CMTaskSequenceStepApplyOperatingSystem",
            f"{task_sequence} / {step}",
        )
