from typing import Annotated

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from blogserver.database import get_db
from blogserver.dependencies import SearchParams
from blogserver.schemas import (
    MAX_ID,
    CreateResponse,
    ErrorResponse,
    PostContent,
    PostCreate,
    PostList,
    SuccessResponse,
)
from blogserver.services import post_store

router = APIRouter(
    prefix="/api/v1/blogs/{blog_id}/posts",
    tags=["posts"],
    responses={500: {"model": ErrorResponse}},
)

BlogId = Annotated[int, Path(ge=0, le=MAX_ID)]
PostId = Annotated[int, Path(ge=0, le=MAX_ID)]


@router.post("", status_code=201, response_model=CreateResponse)
async def create_post(blog_id: BlogId, data: PostCreate, db: AsyncSession = Depends(get_db)):
    post_id = await post_store.create_post(db, blog_id, data.user_id, data.title, data.text)
    return CreateResponse(post_id=post_id)


@router.get("/{post_id}", response_model=PostContent, responses={404: {"model": ErrorResponse}})
async def get_post(blog_id: BlogId, post_id: PostId, db: AsyncSession = Depends(get_db)):
    return await post_store.get_post(db, blog_id, post_id)


@router.get("", response_model=PostList)
async def list_posts(
    blog_id: BlogId,
    params: SearchParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await post_store.search_posts(db, blog_id, params.filter, params.start, params.end)


@router.delete("/{post_id}", response_model=SuccessResponse)
async def delete_post(blog_id: BlogId, post_id: PostId, db: AsyncSession = Depends(get_db)):
    await post_store.delete_post(db, blog_id, post_id)
    return SuccessResponse()
