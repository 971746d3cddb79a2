"""Build and package selection.

A selection is either deterministic (a name filter or package name was given)
or made by the operator at a console prompt. Without a console there is no
operator, so an unusable selection fails fast instead of prompting forever.
"""

from __future__ import annotations

from typing import Callable, Sequence, TypeVar

from osimage_promoter.domain import BuildRecord, PackageRecord
from osimage_promoter.exceptions import SelectionError
from osimage_promoter.logging import LoggerFactory

log = LoggerFactory.for_selection()

T = TypeVar("T")

InputFunc = Callable[[str], str]
OutputFunc = Callable[[str], None]


def latest_match(records: Sequence[BuildRecord], name_filter: str) -> BuildRecord | None:
    """Return the most recently modified record whose name starts with the filter."""
    matches = [record for record in records if record.name.startswith(name_filter)]
    if not matches:
        return None
    return max(matches, key=lambda record: record.modified)


def parse_choice(answer: str, count: int, *, multiple: bool) -> list[int]:
    """Parse "1", "1,3" or "2-4" into zero-based indexes.

    Raises:
        ValueError: If the answer is not a valid selection
    """
    indexes: list[int] = []
    for part in answer.replace(" ", "").split(","):
        if not part:
            continue
        if "-" in part:
            start_text, end_text = part.split("-", 1)
            numbers = range(int(start_text), int(end_text) + 1)
        else:
            numbers = [int(part)]
        for number in numbers:
            if number < 1 or number > count:
                raise ValueError(f"{number} is not between 1 and {count}")
            if number - 1 not in indexes:
                indexes.append(number - 1)
    if len(indexes) > 1 and not multiple:
        raise ValueError("Select a single entry")
    return indexes


def prompt_selection(
    items: Sequence[T],
    labels: Sequence[str],
    title: str,
    *,
    multiple: bool,
    input_func: InputFunc = input,
    output: OutputFunc = print,
) -> list[T]:
    """Ask the operator to pick entries, asking again until something is picked.

    Raises:
        SelectionError: If there is nothing to choose from or input is closed
    """
    if not items:
        raise SelectionError(f"No entries available for: {title}")
    hint = "numbers, e.g. 1,3 or 2-4" if multiple else "a number"
    while True:
        output(title)
        for number, label in enumerate(labels, start=1):
            output(f"  {number:>3}  {label}")
        try:
            answer = input_func(f"Select {hint}: ")
        except EOFError as exc:
            raise SelectionError(f"Input closed while waiting for: {title}") from exc
        try:
            indexes = parse_choice(answer, len(items), multiple=multiple)
        except ValueError as exc:
            output(f"Invalid selection: {exc}")
            continue
        if indexes:
            return [items[index] for index in indexes]
        log.warning("Nothing selected, asking again")


def select_builds(
    records: Sequence[BuildRecord],
    name_filter: str | None,
    *,
    interactive: bool,
    input_func: InputFunc = input,
    output: OutputFunc = print,
) -> list[BuildRecord]:
    """Pick the builds to promote.

    With a filter, the latest build whose name starts with it is used. Without
    a filter, or when nothing matches, the operator chooses one or more builds;
    unattended runs raise instead.

    Raises:
        SelectionError: If no build can be selected
    """
    if name_filter:
        match = latest_match(records, name_filter)
        if match is not None:
            log.info(f"Selected {match.format_label()} for filter '{name_filter}'")
            return [match]
        log.warning(f"No build name starts with '{name_filter}'")
        if not interactive:
            raise SelectionError(f"No build name starts with '{name_filter}'")
    elif not interactive:
        raise SelectionError(
            "A build name filter is required when running non-interactively"
        )

    ordered = sorted(records, key=lambda record: record.modified, reverse=True)
    selected = prompt_selection(
        ordered,
        [record.format_label() for record in ordered],
        "Available builds:",
        multiple=True,
        input_func=input_func,
        output=output,
    )
    for build in selected:
        log.info(f"Operator selected {build.format_label()}")
    return selected


def select_existing_package(
    packages: Sequence[PackageRecord],
    name: str | None,
    *,
    interactive: bool,
    title: str,
    input_func: InputFunc = input,
    output: OutputFunc = print,
) -> PackageRecord:
    """Pick the existing package whose content will be replaced.

    Raises:
        SelectionError: If the named package is missing or no choice can be made
    """
    if name:
        for package in packages:
            if package.name == name:
                log.info(f"Selected existing package {package.format_label()}")
                return package
        raise SelectionError(f"No existing package named '{name}'")
    if not interactive:
        raise SelectionError(
            f"An existing package name is required when running non-interactively: {title}"
        )
    ordered = sorted(packages, key=lambda package: package.name)
    (package,) = prompt_selection(
        ordered,
        [package.format_label() for package in ordered],
        title,
        multiple=False,
        input_func=input_func,
        output=output,
    )
    log.info(f"Operator selected existing package {package.format_label()}")
    return package
