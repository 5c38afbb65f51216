"""
Utilities module for project snapshot sync.

Helpers for working with host project URLs.
"""

import re
from typing import Optional

PROJECT_URL_PATTERN = re.compile(r'bolt\.new/~/([^/?#]+)')


def extract_project_id_from_url(url: Optional[str]) -> Optional[str]:
    """
    Extract the project ID from a host project URL.

    URL format: https://bolt.new/~/PROJECT_ID

    Args:
        url: The page URL

    Returns:
        The project ID or None if the URL is not a project page
    """
    if not url:
        return None
    match = PROJECT_URL_PATTERN.search(url)
    return match.group(1) if match else None


def is_project_page(url: Optional[str]) -> bool:
    return extract_project_id_from_url(url) is not None
