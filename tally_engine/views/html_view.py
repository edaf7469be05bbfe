"""
HTML View
Renders HTML templates
"""

from pathlib import Path
from typing import Optional
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates


class HtmlView:
    """HTML template renderer"""

    def __init__(self, template_path: Optional[Path] = None):
        template_path = template_path or Path(__file__).parent.parent / "templates"
        self.templates = Jinja2Templates(directory=str(template_path))

    def render_string(self, template_name: str, context: Optional[dict] = None) -> str:
        """Render a template to text (autoescaped)"""
        return self.templates.get_template(template_name).render(**(context or {}))

    def response(self, html: str, status_code: int = 200) -> HTMLResponse:
        return HTMLResponse(content=html, status_code=status_code)


# Global instance
html_view = HtmlView()
