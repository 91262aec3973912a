"""
Page shell shared by every SmartPass screen.

Dashboard, teacher view and sign-in pages get the header with navigation
and account controls; kiosk and monitor render bare so they can run
fullscreen or inside an iframe.
"""

from typing import Optional

from identity_access.domain import ROLE_ADMIN, ROLE_TEACHER, Identity

from .base import Component


class Layout(Component):
    def __init__(
        self,
        title: str,
        content: str,
        *,
        identity: Optional[Identity] = None,
        role: str = "student",
        show_nav: bool = True,
        current_path: str = "/",
    ):
        """
        `content` is trusted, pre-rendered HTML; `title` is escaped. The
        "My Passes" link appears for teacher and admin roles only.
        """
        self.title = title
        self.content = content
        self.identity = identity
        self.role = role
        self.show_nav = show_nav
        self.current_path = current_path

    def render(self) -> str:
        header_html = self._render_header() if self.show_nav else ""
        body_class = "layout" if self.show_nav else "layout layout--bare"
        footer_html = self._render_footer() if self.show_nav else ""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body class="{body_class}">
    <a href="#main-content" class="skip-link">Skip to main content</a>
    {header_html}
    <div id="live-region" class="sr-only" role="status" aria-live="polite" aria-atomic="true"></div>
    <main id="main-content" class="main-content" role="main">
        {self.content}
        {footer_html}
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta name="description" content="SmartPass - digital hall passes for schools">
    <title>{self.escape(self.title)} - SmartPass</title>
    <link rel="stylesheet" href="/static/css/smartpass.css?v=1">
    <script src="/static/js/smartpass.js?v=1" defer></script>
    """

    def _nav_link(self, href: str, label: str) -> str:
        active = self.current_path == href
        attrs = self.attributes(
            href=href,
            class_=self.classes("nav-link", nav_link__active=active),
            aria_current="page" if active else None,
        )
        return f"<a {attrs}>{self.escape(label)}</a>"

    def _render_header(self) -> str:
        links = [
            self._nav_link("/", "Dashboard"),
            self._nav_link("/monitor", "Open Monitor"),
            self._nav_link("/kiosk", "Kiosk"),
        ]
        if self.role in (ROLE_TEACHER, ROLE_ADMIN):
            links.append(self._nav_link("/teacher", "My Passes"))
        if self.identity is not None:
            account = (
                f'<span class="user-badge">{self.escape(self.identity.label)} &bull; {self.escape(self.role)}</span>'
                '<a class="btn btn-secondary" href="/auth/logout">Sign out</a>'
            )
        else:
            account = '<a class="btn btn-primary" href="/auth/login">Sign in with Google</a>'
        return f"""
    <header class="site-header" role="banner">
        <a class="site-header__brand" href="/">SmartPass</a>
        <nav class="site-nav" aria-label="Main">{"".join(links)}</nav>
        <div class="site-header__account">{account}</div>
    </header>
    """

    @staticmethod
    def _render_footer() -> str:
        return """
        <footer class="content-footer" role="contentinfo">
            <p class="text-center text-muted">SmartPass keeps a live board of who is out of class. Passes are stored by the school.</p>
        </footer>
        """
