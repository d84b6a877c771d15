"""
api/routes/v1/notes.py -- Owner-scoped note endpoints.

Routes:
  POST   /api/v1/notes       -- create (or update an owned note when id is given)
  GET    /api/v1/notes       -- list the caller's notes, newest first
  DELETE /api/v1/notes/{id}  -- delete an owned note; 204

Auth policy: every route requires an access token. The owner is always the
authenticated user id from get_current_user_id(); no route accepts an owner
id from the request. A note owned by someone else answers 404, exactly like
a missing one.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from api.models import NoteRequest, NoteResponse
from auth.dependencies import get_current_user_id
from notes.models import Note
from notes.store import NoteStore

router = APIRouter()


@router.post("/notes", response_model=NoteResponse, status_code=201)
def save_note(
    request: Request,
    body: NoteRequest,
    user_id: str = Depends(get_current_user_id),
) -> NoteResponse:
    note_store: NoteStore = request.app.state.note_store
    note = Note(owner_id=user_id, title=body.title, content=body.content, color=body.color)
    if body.id is not None:
        note.id = body.id
    return NoteResponse.from_note(note_store.save(note))


@router.get("/notes", response_model=list[NoteResponse])
def list_notes(
    request: Request,
    user_id: str = Depends(get_current_user_id),
) -> list[NoteResponse]:
    note_store: NoteStore = request.app.state.note_store
    return [NoteResponse.from_note(n) for n in note_store.list_by_owner(user_id)]


@router.delete("/notes/{note_id}", status_code=204)
def delete_note(
    request: Request,
    note_id: str,
    user_id: str = Depends(get_current_user_id),
) -> Response:
    note_store: NoteStore = request.app.state.note_store
    if not note_store.delete_owned(note_id, user_id):
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Note not found."},
        )
    return Response(status_code=204)
