"""
Wire models for the push notification provider.

The provider (OneSignal REST API v1) accepts a JSON body of the shape:

    {
        "app_id": "...",
        "included_segments": ["All"],
        "headings": {"en": "Database Updated"},
        "contents": {"en": "There's new content in your app!"}
    }

Design decisions:
- Using Pydantic for validation and serialization
- The request is built fresh per event from configuration only; nothing
  from the triggering write ends up in it
- The response is kept as raw text: it is logged, not parsed
"""

from datetime import datetime
from pydantic import BaseModel, Field

from shared.config import NotifierConfig


class NotificationRequest(BaseModel):
    """
    Body of a create-notification call.

    Audience is a list of provider-side segments; "All" targets every
    subscriber of the app.
    """
    app_id: str = Field(..., description="Provider application id")
    included_segments: list[str] = Field(
        default_factory=lambda: ["All"],
        description="Audience selector"
    )
    headings: dict[str, str] = Field(..., description="Title text keyed by language")
    contents: dict[str, str] = Field(..., description="Body text keyed by language")

    @classmethod
    def from_config(cls, config: NotifierConfig) -> "NotificationRequest":
        """Build the fixed notification described by config."""
        return cls(
            app_id=config.app_id,
            included_segments=list(config.included_segments),
            headings={config.language: config.title},
            contents={config.language: config.body},
        )

    def to_json(self) -> str:
        """Serialize for the request body."""
        return self.model_dump_json()


class NotificationResponse(BaseModel):
    """Raw provider reply. Not parsed."""
    status_code: int
    text: str
    received_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def __str__(self) -> str:
        return self.text

