from __future__ import annotations

from datetime import datetime
from html import escape
from typing import Any, Callable, Dict, List, Optional

from .storage import Page

USERNAME_ERROR = "Please enter a username."


def render_index(
    *,
    links: List[str],
    username: str,
    year: Optional[int] = None,
    errors: Optional[Dict[str, str]] = None,
    title: str = "Index",
) -> str:
    errors = errors or {}
    if links:
        items = "\n".join(
            f'<li><a href="/view/{escape(link)}">{escape(link)}</a></li>' for link in links
        )
        links_html = f'<ul class="page-list">\n{items}\n</ul>'
    else:
        links_html = '<p class="empty">No notes yet. Create one below.</p>'
    username_error = errors.get("Username")
    error_html = (
        f'<p class="error" data-field="Username">{escape(username_error)}</p>'
        if username_error
        else ""
    )
    content = f"""
    <section class="panel">
      <h2>Notes</h2>
      {links_html}
      <div class="new-note">
        <input type="text" id="notename" placeholder="new-note-name" onkeyup="inputKeyUp(event)" />
        <button type="button" onclick="createNewNote()">Create</button>
      </div>
    </section>
    <section class="panel">
      <h2>Profile</h2>
      <p>Signed in as <strong class="username">{escape(username)}</strong>.
        <button type="button" id="setName">Change name</button></p>
      <dialog id="changeName">
        <form method="post" action="/">
          <label>Username
            <input type="text" name="username" value="{escape(username)}" />
          </label>
          <button type="submit">Save</button>
        </form>
      </dialog>
      {error_html}
    </section>
    """
    return _layout(title, content, username=username, year=year)


def render_view(page: Page, *, year: Optional[int] = None) -> str:
    title = escape(page.title)
    content = f"""
    <section class="panel">
      <nav><a href="/">← Index</a> · <a href="/edit/{title}">Edit</a></nav>
      <h2>{title}</h2>
      <pre class="page-body">{escape(page.text)}</pre>
    </section>
    """
    return _layout(page.title, content, year=year)


def render_edit(page: Page, *, year: Optional[int] = None) -> str:
    title = escape(page.title)
    content = f"""
    <section class="panel">
      <nav><a href="/">← Index</a> · <a href="/view/{title}">View</a></nav>
      <h2>Editing {title}</h2>
      <form method="post" action="/save/{title}">
        <textarea name="body" rows="20" cols="80">{escape(page.text)}</textarea>
        <button type="submit">Save</button>
      </form>
    </section>
    """
    return _layout(f"Editing {page.title}", content, year=year)


def render_not_found(path: str, *, year: Optional[int] = None) -> str:
    content = f"""
    <section class="panel">
      <h2>Not found</h2>
      <p>Nothing lives at <code>{escape(path)}</code>.</p>
      <p><a href="/">Back to the index</a></p>
    </section>
    """
    return _layout("Not found", content, year=year)


VIEWS: Dict[str, Callable[..., str]] = {
    "index": render_index,
    "view": render_view,
    "edit": render_edit,
    "not_found": render_not_found,
}


def render(view: str, *args: Any, **kwargs: Any) -> str:
    try:
        renderer = VIEWS[view]
    except KeyError:
        raise ValueError(f"Unknown view {view!r}") from None
    return renderer(*args, **kwargs)


def _layout(
    title: str,
    content: str,
    *,
    username: Optional[str] = None,
    year: Optional[int] = None,
) -> str:
    year = year or datetime.now().year
    owner = f" · {escape(username)}" if username else ""
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <title>{escape(title)} · Plain Notes</title>
  <link rel="icon" href="/favicon.ico" />
  <link rel="stylesheet" href="/assets/css/site.css" />
</head>
<body>
  <header>
    <h1><a href="/">Plain Notes</a></h1>
  </header>
  <main>
    {content}
  </main>
  <footer>&copy; {year}{owner}</footer>
  <script src="/assets/js/site.js"></script>
</body>
</html>"""
