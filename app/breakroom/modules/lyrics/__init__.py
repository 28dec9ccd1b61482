"""
Songwriting: songs, lyric sections and collaborators.

Access rules:
- Owner: full control, the only one who manages collaborators or deletes the song
- Editor collaborator: edits the song and any of its lyrics
- Viewer collaborator, or anyone when the song is public: read-only
"""
