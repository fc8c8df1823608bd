"""
Fixed text of the staging deploy checklist.

The parser and the serializer share these strings so that a rendered body
always parses back to the document it came from.
"""

import re

LINE_BREAK = "\r\n"

RELEASE_VERSION_LABEL = "**Release Version:**"
COMPARE_CHANGES_LABEL = "**Compare Changes:**"

PULL_REQUESTS_HEADER = "**This release contains changes from the following pull requests:**"
INTERNAL_QA_HEADER = "**Internal QA:**"
DEPLOY_BLOCKERS_HEADER = "**Deploy Blockers:**"
VERIFICATIONS_HEADER = "**Deployer verifications:**"

# Headings are located by their trailing text only.
PULL_REQUESTS_SENTINEL = "pull requests:**"
INTERNAL_QA_SENTINEL = "Internal QA:**"
DEPLOY_BLOCKERS_SENTINEL = "Deploy Blockers:**"

TIMING_DASHBOARD_MARKER = "I checked the [App Timing Dashboard]"
FIREBASE_MARKER = "I checked [Firebase Crashlytics]"
GITHUB_STATUS_MARKER = "I checked [GitHub Status]"

TIMING_DASHBOARD_CHECK = (
    TIMING_DASHBOARD_MARKER
    + "({timing_dashboard_url}) and verified this release does not cause a "
    "noticeable performance regression."
)
FIREBASE_CHECK = (
    FIREBASE_MARKER
    + "({firebase_crashlytics_url}) and verified that this release does not "
    "introduce any new crashes. More detailed instructions on this verification "
    "can be found [here]({firebase_instructions_url})."
)
GITHUB_STATUS_CHECK = (
    GITHUB_STATUS_MARKER
    + "({github_status_url}) and verified there is no reported incident with Actions."
)

TAG_REGEX = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)(?:-([0-9]+))?")
NO_QA_REGEX = re.compile(r"\[No\s?QA\]", re.IGNORECASE)

CHECKLIST_ITEM_REGEX = re.compile(r"^-\s\[([ x])\]\s(\S+)(?:\s+-\s+@(\S+))?")


def checkbox(checked: bool) -> str:
    return "- [x]" if checked else "- [ ]"


def checked_marker_regex(marker: str) -> re.Pattern[str]:
    """Regex matching a ticked checkbox followed by ``marker``."""
    return re.compile(r"-\s\[x\]\s" + re.escape(marker))
