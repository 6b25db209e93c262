"""Substring search over note titles and contents."""


def search(notes, query):
    """Return notes containing query (case-insensitive), title matches first.

    Ordering within each group follows the input order. An empty query
    matches nothing.
    """
    if not query:
        return []
    needle = query.casefold()
    title_hits = []
    content_hits = []
    for note in notes:
        if needle in note.title.casefold():
            title_hits.append(note)
        elif needle in note.content.casefold():
            content_hits.append(note)
    return title_hits + content_hits
