from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from sessionbridge.config import GITHUB_GRAPHQL_URL
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import UpstreamRequestFailed

logger = get_logger(__name__)

ISSUE_ALIAS_PREFIX = "issue"
PROJECT_ITEMS_LIMIT = 10
FIELD_VALUES_LIMIT = 20
STATUS_FIELD_NAME = "Status"
MAX_ISSUE_NUMBERS = 100

_SINGLE_SELECT_FRAGMENT = """
                            ... on ProjectV2ItemFieldSingleSelectValue {
                                name
                                color
                                field {
                                    ... on ProjectV2SingleSelectField {
                                        id
                                        name
                                        options {
                                            id
                                            name
                                            color
                                        }
                                    }
                                }
                            }"""

UPDATE_STATUS_MUTATION = f"""
mutation($input: UpdateProjectV2ItemFieldValueInput!) {{
    updateProjectV2ItemFieldValue(input: $input) {{
        projectV2Item {{
            fieldValues(first: {FIELD_VALUES_LIMIT}) {{
                nodes {{
                    ... on ProjectV2ItemFieldSingleSelectValue {{
                        name
                        color
                        field {{
                            ... on ProjectV2SingleSelectField {{
                                name
                            }}
                        }}
                    }}
                }}
            }}
        }}
    }}
}}
"""


@dataclass(frozen=True)
class StatusOption:
    id: str
    name: str
    color: str


@dataclass(frozen=True)
class IssueStatus:
    number: int
    status: Optional[str] = None
    color: Optional[str] = None
    project_id: Optional[str] = None
    project_item_id: Optional[str] = None
    status_field_id: Optional[str] = None
    status_options: List[StatusOption] = field(default_factory=list)


@dataclass(frozen=True)
class UpdateStatusResult:
    status: str
    color: str


def build_project_status_query(issue_numbers: Sequence[int]) -> str:
    """Build one aliased query covering every requested issue."""
    parts = []
    for i, number in enumerate(issue_numbers):
        parts.append(
            f"""
            {ISSUE_ALIAS_PREFIX}{i}: issue(number: {int(number)}) {{
                number
                projectItems(first: {PROJECT_ITEMS_LIMIT}) {{
                    nodes {{
                        id
                        project {{
                            id
                        }}
                        fieldValues(first: {FIELD_VALUES_LIMIT}) {{
                            nodes {{{_SINGLE_SELECT_FRAGMENT}
                            }}
                        }}
                    }}
                }}
            }}"""
        )
    return (
        "query($owner: String!, $name: String!) {\n"
        "    repository(owner: $owner, name: $name) {"
        + "".join(parts)
        + "\n    }\n}\n"
    )


def _find_status(item: Dict[str, Any], number: int) -> Optional[IssueStatus]:
    nodes = ((item.get("fieldValues") or {}).get("nodes")) or []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        field_detail = node.get("field")
        if not isinstance(field_detail, dict) or field_detail.get("name") != STATUS_FIELD_NAME:
            continue
        if node.get("name") is None:
            continue
        options = [
            StatusOption(id=opt.get("id", ""), name=opt.get("name", ""), color=opt.get("color", ""))
            for opt in field_detail.get("options") or []
            if isinstance(opt, dict)
        ]
        return IssueStatus(
            number=number,
            status=node["name"],
            color=node.get("color"),
            project_id=(item.get("project") or {}).get("id"),
            project_item_id=item.get("id"),
            status_field_id=field_detail.get("id"),
            status_options=options,
        )
    return None


def build_issue_status_list(
    repository: Dict[str, Any], issue_numbers: Sequence[int]
) -> List[IssueStatus]:
    """Map the aliased response back onto the requested order.

    Only the first project item of each issue is read. Issues with no
    ``Status`` value come back carrying just their number.
    """
    found: Dict[int, IssueStatus] = {}
    for alias, issue in (repository or {}).items():
        if not alias.startswith(ISSUE_ALIAS_PREFIX) or not isinstance(issue, dict):
            continue
        number = issue.get("number")
        items = ((issue.get("projectItems") or {}).get("nodes")) or []
        if not number or not items:
            continue
        status = _find_status(items[0], number)
        if status is not None:
            found[number] = status
    return [found.get(number, IssueStatus(number=number)) for number in issue_numbers]


class GitHubProjectsClient:
    """Reads and updates the ``Status`` field of GitHub Projects (v2) items."""

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        access_token: str,
        *,
        graphql_url: str = GITHUB_GRAPHQL_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._access_token = access_token
        self.graphql_url = graphql_url
        self.timeout = timeout
        self._transport = transport

    async def _post(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.graphql_url,
                    json={"query": query, "variables": variables},
                    headers=headers,
                )
        except httpx.HTTPError as exc:
            logger.error("github_request_failed", error=str(exc))
            raise UpstreamRequestFailed("request failed", detail={"error": str(exc)}) from exc

        if resp.status_code != 200:
            logger.error("github_api_error", status=resp.status_code, body=resp.text[:200])
            raise UpstreamRequestFailed(
                f"GitHub API error: {resp.status_code}", detail={"status": resp.status_code}
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamRequestFailed("failed to parse response") from exc
        if not isinstance(payload, dict):
            raise UpstreamRequestFailed("failed to parse response")

        errors = payload.get("errors")
        if errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else str(errors[0])
            logger.error("github_graphql_error", message=message)
            raise UpstreamRequestFailed(f"GraphQL error: {message}", detail={"errors": errors})
        data = payload.get("data")
        if not isinstance(data, dict):
            raise UpstreamRequestFailed("response carried no data")
        return data

    async def fetch_project_status(
        self, owner: str, repo: str, issue_numbers: Sequence[int]
    ) -> List[IssueStatus]:
        if not issue_numbers:
            return []
        if len(issue_numbers) > MAX_ISSUE_NUMBERS:
            raise ValueError(f"maximum {MAX_ISSUE_NUMBERS} issues allowed per request")
        data = await self._post(
            build_project_status_query(issue_numbers), {"owner": owner, "name": repo}
        )
        repository = data.get("repository")
        if not isinstance(repository, dict):
            raise UpstreamRequestFailed("repository not found", detail={"owner": owner, "repo": repo})
        return build_issue_status_list(repository, issue_numbers)

    async def update_project_status(
        self, project_id: str, item_id: str, field_id: str, option_id: str
    ) -> UpdateStatusResult:
        variables = {
            "input": {
                "projectId": project_id,
                "itemId": item_id,
                "fieldId": field_id,
                "value": {"singleSelectOptionId": option_id},
            }
        }
        data = await self._post(UPDATE_STATUS_MUTATION, variables)
        result = data.get("updateProjectV2ItemFieldValue")
        if not isinstance(result, dict):
            raise UpstreamRequestFailed("failed to update status")
        item = result.get("projectV2Item") or {}
        for node in ((item.get("fieldValues") or {}).get("nodes")) or []:
            if not isinstance(node, dict):
                continue
            field_detail = node.get("field")
            if (
                isinstance(field_detail, dict)
                and field_detail.get("name") == STATUS_FIELD_NAME
                and node.get("name") is not None
            ):
                return UpdateStatusResult(status=node["name"], color=node.get("color") or "")
        raise UpstreamRequestFailed("failed to get updated status")
