"""User-visible notices (toasts). Rendering is up to the front end; this keeps the queue."""
from datetime import datetime, timezone
from typing import List, Literal, Optional

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

NoticeKind = Literal["success", "error", "info"]


class Notice(BaseModel):
    title: str
    message: str
    kind: NoticeKind = "info"
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Notices:
    def __init__(self):
        self.items: List[Notice] = []

    def show(self, title: str, message: str, kind: NoticeKind = "info") -> Notice:
        notice = Notice(title=title, message=message, kind=kind)
        self.items.append(notice)
        if kind == "error":
            logger.warning("notice", title=title, message=message)
        else:
            logger.debug("notice", title=title, message=message, kind=kind)
        return notice

    def success(self, title: str, message: str) -> Notice:
        return self.show(title, message, "success")

    def error(self, title: str, message: str) -> Notice:
        return self.show(title, message, "error")

    def info(self, title: str, message: str) -> Notice:
        return self.show(title, message, "info")

    @property
    def last(self) -> Optional[Notice]:
        return self.items[-1] if self.items else None

    def of_kind(self, kind: NoticeKind) -> List[Notice]:
        return [n for n in self.items if n.kind == kind]

    def clear(self):
        self.items = []
