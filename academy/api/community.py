"""
Community API routes.

Reads are open to members; writes check authorship or staff role in the
service layer.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from academy.core.session import Identity, require_identity
from academy.features.community.service import (
    create_comment,
    create_post,
    delete_comment,
    delete_post,
    get_post,
    list_categories,
    list_comments,
    list_posts,
    toggle_comment_like,
    toggle_post_like,
    update_comment,
    update_post,
)
from academy.models.community import Comment, CommunityCategory, LikeToggle, Post

router = APIRouter(prefix="/api/community", tags=["community"])


class PostCreate(BaseModel):
    title: str
    content: str
    category_id: str
    type: str = "GENERAL"


class PostUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category_id: Optional[str] = None
    type: Optional[str] = None
    pinned: Optional[bool] = None
    locked: Optional[bool] = None


class CommentCreate(BaseModel):
    content: str
    parent_id: Optional[str] = None


class CommentUpdate(BaseModel):
    content: str


@router.get("/categories", response_model=List[CommunityCategory])
def categories(identity: Identity = Depends(require_identity)):
    return list_categories()


@router.get("/posts", response_model=List[Post])
def posts(
    category: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(require_identity),
):
    return list_posts(identity, category_slug=category, limit=limit, offset=offset)


@router.post("/posts", response_model=Post, status_code=201)
def new_post(body: PostCreate, identity: Identity = Depends(require_identity)):
    return create_post(identity, body.title, body.content, body.category_id, body.type)


@router.get("/posts/{post_id}", response_model=Post)
def read_post(post_id: str, identity: Identity = Depends(require_identity)):
    return get_post(identity, post_id)


@router.put("/posts/{post_id}", response_model=Post)
def edit_post(post_id: str, body: PostUpdate, identity: Identity = Depends(require_identity)):
    return update_post(identity, post_id, body.model_dump(exclude_unset=True))


@router.delete("/posts/{post_id}")
def remove_post(post_id: str, identity: Identity = Depends(require_identity)):
    delete_post(identity, post_id)
    return {"ok": True}


@router.post("/posts/{post_id}/like", response_model=LikeToggle)
def like_post(post_id: str, identity: Identity = Depends(require_identity)):
    return toggle_post_like(identity, post_id)


@router.get("/posts/{post_id}/comments", response_model=List[Comment])
def post_comments(post_id: str, identity: Identity = Depends(require_identity)):
    return list_comments(identity, post_id)


@router.post("/posts/{post_id}/comments", response_model=Comment, status_code=201)
def comment_on_post(post_id: str, body: CommentCreate, identity: Identity = Depends(require_identity)):
    return create_comment(identity, post_id, body.content, body.parent_id)


@router.put("/comments/{comment_id}", response_model=Comment)
def edit_comment(comment_id: str, body: CommentUpdate, identity: Identity = Depends(require_identity)):
    return update_comment(identity, comment_id, body.content)


@router.delete("/comments/{comment_id}")
def remove_comment(comment_id: str, identity: Identity = Depends(require_identity)):
    delete_comment(identity, comment_id)
    return {"ok": True}


@router.post("/comments/{comment_id}/like", response_model=LikeToggle)
def like_comment(comment_id: str, identity: Identity = Depends(require_identity)):
    return toggle_comment_like(identity, comment_id)
