from pydantic import BaseModel, Field

# Identifiers are unsigned but stored in signed 64-bit columns.
MAX_ID = 2**63 - 1


# --- Post ---

class PostCreate(BaseModel):
    user_id: int = Field(ge=0, le=MAX_ID)
    title: str = Field(max_length=300)
    text: str


class PostContent(BaseModel):
    post_id: int
    user_id: int
    title: str
    text: str
    created_at: int  # Unix seconds


class PostList(BaseModel):
    items: list[PostContent]
    total: int


# --- Operation results ---

class CreateResponse(BaseModel):
    success: bool = True
    post_id: int


class SuccessResponse(BaseModel):
    success: bool = True


# --- Errors ---

class ErrorResponse(BaseModel):
    code: str
    message: str
    details: dict = {}
