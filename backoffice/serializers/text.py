import bleach


def clean_text(v):
    """Strip markup from free text before it is stored."""
    if v is None:
        return None
    return bleach.clean(v.strip(), tags=[], strip=True)
