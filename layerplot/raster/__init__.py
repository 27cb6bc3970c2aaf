from .canvas import blend_pixels, blit, draw_hline, draw_pixel, draw_vline, fill_rect, new_canvas
from .draw_lines import draw_polyline
from .draw_markers import draw_markers
from .draw_text import FontFace, draw_text, load_face, text_width
from .rich_text import TextBlock, layout_rich_text, points_to_px, render_text_block, rich_text_patch

__all__ = [
    "FontFace",
    "TextBlock",
    "blend_pixels",
    "blit",
    "draw_hline",
    "draw_markers",
    "draw_pixel",
    "draw_polyline",
    "draw_text",
    "draw_vline",
    "fill_rect",
    "layout_rich_text",
    "load_face",
    "new_canvas",
    "points_to_px",
    "render_text_block",
    "rich_text_patch",
    "text_width",
]
