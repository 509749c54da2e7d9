LIKE_ESCAPE = "\\"


def contains_pattern(query: str) -> str:
    """LIKE pattern matching ``query`` anywhere, with its wildcards taken literally."""
    escaped = (
        query.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
