from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SourceIssue:
    """Snapshot of a GitHub issue as returned by the REST API."""
    id: int
    number: int
    title: str
    body: str
    html_url: str
    is_pull_request: bool = False

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "SourceIssue":
        """Build from a GitHub /issues list item."""
        return cls(
            id=int(item["id"]),
            number=int(item["number"]),
            title=item.get("title") or "",
            # GitHub returns null for issues created without a description
            body=item.get("body") or "",
            html_url=item.get("html_url") or "",
            is_pull_request="pull_request" in item,
        )


@dataclass(frozen=True)
class SummaryRequest:
    """A prompt template plus the raw text substituted into it."""
    prompt_template: str
    content: str

    def render(self) -> str:
        # Positional "{}" and named "{content}" are both accepted
        return self.prompt_template.format(self.content, content=self.content)


@dataclass(frozen=True)
class StreamEvent:
    """One element of a model response stream."""
    kind: str  # "fragment", "error", "end"
    text: str = ""
    error: Optional[BaseException] = None

    FRAGMENT = "fragment"
    ERROR = "error"
    END = "end"

    @classmethod
    def fragment(cls, text: str) -> "StreamEvent":
        return cls(kind=cls.FRAGMENT, text=text)

    @classmethod
    def failure(cls, error: BaseException) -> "StreamEvent":
        return cls(kind=cls.ERROR, error=error)

    @classmethod
    def end(cls) -> "StreamEvent":
        return cls(kind=cls.END)


@dataclass(frozen=True)
class TargetIssuePayload:
    """Fields sent to Jira when creating a mirrored issue."""
    project_key: str
    issue_type: str
    summary: str
    description: str

    def to_json(self) -> Dict[str, Any]:
        return {
            "fields": {
                "project": {"key": self.project_key},
                "summary": self.summary,
                "description": self.description,
                "issuetype": {"name": self.issue_type},
            }
        }


@dataclass
class CycleStats:
    """Outcome counters for one poll cycle."""
    issues_seen: int = 0
    pull_requests_skipped: int = 0
    issues_already_processed: int = 0
    issues_created: int = 0
    issues_failed: int = 0
    links_failed: int = 0
    fetch_failed: bool = False
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def record_error(self, issue_number: Optional[int], stage: str, message: str) -> None:
        self.errors.append({
            "issue_number": issue_number,
            "stage": stage,
            "error": message,
        })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "issues_seen": self.issues_seen,
            "pull_requests_skipped": self.pull_requests_skipped,
            "issues_already_processed": self.issues_already_processed,
            "issues_created": self.issues_created,
            "issues_failed": self.issues_failed,
            "links_failed": self.links_failed,
            "fetch_failed": self.fetch_failed,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat() + "Z",
            "completed_at": (
                self.completed_at.isoformat() + "Z" if self.completed_at else None
            ),
        }
