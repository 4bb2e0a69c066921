"""Pydantic models for the Gmail REST v1 payload shapes (subset we need)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class GmailProfile(BaseModel):
    """users.getProfile."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    emailAddress: Optional[str] = None
    historyId: Optional[str] = None
    messagesTotal: Optional[int] = None
    threadsTotal: Optional[int] = None


class GmailMessageRef(BaseModel):
    """Message id pair as returned by messages.list and history.list."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    threadId: str


class GmailMessageList(BaseModel):
    """users.messages.list."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    messages: list[GmailMessageRef] = Field(default_factory=list)
    nextPageToken: Optional[str] = None
    resultSizeEstimate: Optional[int] = None


class GmailHeader(BaseModel):
    name: str
    value: str = ""


class GmailPartBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    size: Optional[int] = None
    data: Optional[str] = None  # base64url
    attachmentId: Optional[str] = None


class GmailMessagePart(BaseModel):
    """MIME part; parts nest arbitrarily (multipart/alternative inside multipart/mixed...)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    partId: Optional[str] = None
    mimeType: Optional[str] = None
    filename: Optional[str] = None
    headers: list[GmailHeader] = Field(default_factory=list)
    body: Optional[GmailPartBody] = None
    parts: list["GmailMessagePart"] = Field(default_factory=list)


class GmailMessage(BaseModel):
    """users.messages.get?format=full."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    threadId: str
    labelIds: list[str] = Field(default_factory=list)
    snippet: Optional[str] = None
    historyId: Optional[str] = None
    internalDate: Optional[str] = None  # epoch milliseconds, as a string
    payload: Optional[GmailMessagePart] = None


class GmailMessageAdded(BaseModel):
    message: Optional[GmailMessageRef] = None


class GmailHistoryRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    messagesAdded: list[GmailMessageAdded] = Field(default_factory=list)


class GmailHistoryPage(BaseModel):
    """users.history.list."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    history: list[GmailHistoryRecord] = Field(default_factory=list)
    nextPageToken: Optional[str] = None
    historyId: Optional[str] = None


GmailMessagePart.model_rebuild()
