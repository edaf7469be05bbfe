# Views Package
# MVC View Layer

from .json_view import JsonView
from .html_view import HtmlView

__all__ = ["JsonView", "HtmlView"]
