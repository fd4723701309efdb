"""
In-page scripts evaluated through the browser session.

Each script reads rendered DOM state and returns plain JSON values; all
interpretation happens on the Python side.
"""

COLLECT_ITEMS_JS = r"""
() => Array.from(document.querySelectorAll('article[aria-labelledby]'))
  .map(el => el.outerHTML)
"""

BANNER_TEXTS_JS = r"""
() => Array.from(document.querySelectorAll('div[dir="ltr"]'))
  .map(el => el.textContent || '')
"""

BODY_TEXT_JS = r"""
() => (document.body && document.body.textContent) || ''
"""
