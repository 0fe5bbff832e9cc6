from __future__ import annotations

import os
import re
from urllib.parse import quote, unquote, urlparse, urlunparse

HOSTED_EDIT_ACTIONS = {
    "github.com": ("edit", "blob", ""),
    "gitlab.com": ("-/edit", "-/blob", ""),
    "bitbucket.org": ("src", "src", ""),
    "pagure.io": ("blob", "blob", "f"),
}

_SCP_RX = re.compile(r"^(?:([^@/:]+)@)?([^/:]+):(?!//)(.+)$")


def is_local_url(url: str) -> bool:
    """Whether ``url`` names a repository on the local filesystem."""
    if url.startswith((".", "~", "/")) or url == "":
        return True
    if "://" in url or _SCP_RX.match(url):
        return os.path.exists(url)
    return True


def _get_host_and_repo(url: str) -> tuple[str, str]:
    m = None if "://" in url else _SCP_RX.match(url)
    if m:  # git@github.com:owner/repo.git
        host, path = m.group(2), m.group(3)
    else:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        if parsed.port:
            host = f"{host}:{parsed.port}"
        path = parsed.path
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return host, path


def cache_dir_for(cache_root: str, url: str) -> str:
    """Location of the bare clone of ``url`` below ``cache_root``."""
    host, path = _get_host_and_repo(strip_credentials(url))
    host = host.replace(":", "_") or "_local"
    segments = [seg for seg in path.split("/") if seg and seg not in (".", "..")]
    if not segments:
        segments = ["repository"]
    segments[-1] += ".git"
    return os.path.join(cache_root, host, *segments)


def extract_credentials(url: str) -> tuple[str, str | None, str | None]:
    """Split ``url`` into (url without credentials, username, password)."""
    if "://" not in url:
        return url, None, None
    parsed = urlparse(url)
    if not parsed.username and not parsed.password:
        return url, None, None
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    clean = urlunparse(parsed._replace(netloc=netloc))
    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password else None
    return clean, username, password


def strip_credentials(url: str) -> str:
    return extract_credentials(url)[0]


def inject_credentials(url: str, username: str | None, password: str | None) -> str:
    if not username and not password:
        return url
    parsed = urlparse(url)
    userinfo = quote(username or "", safe="")
    if password:
        userinfo = f"{userinfo}:{quote(password, safe='')}"
    return urlunparse(parsed._replace(netloc=f"{userinfo}@{parsed.netloc}"))


def web_url_for(url: str | None) -> str | None:
    """Browsable https url of a hosted repository, or None for file urls."""
    if not url or url.startswith("file:"):
        return None
    if "://" not in url and not _SCP_RX.match(url):
        return None
    host, path = _get_host_and_repo(strip_credentials(url))
    if not host or not path:
        return None
    return f"https://{host.split(':', 1)[0]}/{path}"


def default_edit_url_pattern(web_url: str | None, reftype: str) -> str | None:
    """Edit url pattern for the well-known hosts; ``{path}`` is left in place."""
    if not web_url:
        return None
    host = urlparse(web_url).hostname or ""
    actions = HOSTED_EDIT_ACTIONS.get(host)
    if actions is None:
        return None
    branch_action, tag_action, category = actions
    action = branch_action if reftype == "branch" else tag_action
    parts = [web_url, action, "{refname}"]
    if category:
        parts.append(category)
    parts.append("{path}")
    return "/".join(parts)


def expand_edit_url_pattern(
    pattern: str,
    *,
    web_url: str | None,
    refname: str,
    reftype: str,
    refhash: str | None,
) -> str:
    values = {
        "{web_url}": web_url or "",
        "{refname}": refname,
        "{reftype}": reftype,
        "{refhash}": refhash or "",
    }
    for token, value in values.items():
        pattern = pattern.replace(token, value)
    return pattern
