"""Open Definition license lookup table."""

from dataclasses import dataclass


@dataclass(frozen=True)
class License:
    """License details."""

    code: str
    title: str
    url: str | None = None


_LICENSES = {
    "CC-BY-4.0": License("CC-BY-4.0", "Creative Commons Attribution 4.0", "https://creativecommons.org/licenses/by/4.0/"),
    "CC-BY-SA-4.0": License(
        "CC-BY-SA-4.0",
        "Creative Commons Attribution Share-Alike 4.0",
        "https://creativecommons.org/licenses/by-sa/4.0/",
    ),
    "CC0-1.0": License("CC0-1.0", "CC0 1.0", "https://creativecommons.org/publicdomain/zero/1.0/"),
    "OGL-UK-3.0": License(
        "OGL-UK-3.0",
        "Open Government Licence 3.0 (United Kingdom)",
        "http://www.nationalarchives.gov.uk/doc/open-government-licence/version/3/",
    ),
    "ODC-BY-1.0": License(
        "ODC-BY-1.0",
        "Open Data Commons Attribution License 1.0",
        "http://www.opendefinition.org/licenses/odc-by",
    ),
    "ODC-ODbL-1.0": License(
        "ODC-ODbL-1.0",
        "Open Data Commons Open Database License 1.0",
        "http://www.opendefinition.org/licenses/odc-odbl",
    ),
    "ODC-PDDL-1.0": License(
        "ODC-PDDL-1.0",
        "Open Data Commons Public Domain Dedication and Licence 1.0",
        "http://www.opendefinition.org/licenses/odc-pddl",
    ),
    "MIT": License("MIT", "MIT License", "https://opensource.org/licenses/MIT"),
}


def lookup_license(code: str | None) -> License | None:
    """Look up license details by code (case-insensitive)."""
    if not code:
        return None
    for key, details in _LICENSES.items():
        if key.lower() == code.lower():
            return details
    return License(code=code, title=code)
