"""notes/ -- Owner-scoped note storage for NoteAuth.

Every operation takes the authenticated user id as an explicit argument.
There is no way to list or delete notes on behalf of another owner.

Layer rule: notes/ may import from auth/ and core/, never from api/.
"""
