"""Colour themes, font stacks and code themes for generated documents."""

from typing import Dict

THEMES: Dict[str, Dict[str, str]] = {
    "default": {
        "bg_primary": "#ffffff",
        "bg_secondary": "#f9fafb",
        "text_primary": "#1f2937",
        "text_secondary": "#6b7280",
        "border_color": "#e5e7eb",
        "primary_color": "#4f46e5",
    },
    "github": {
        "bg_primary": "#ffffff",
        "bg_secondary": "#f6f8fa",
        "text_primary": "#24292f",
        "text_secondary": "#57606a",
        "border_color": "#d0d7de",
        "primary_color": "#0969da",
    },
    "vscode": {
        "bg_primary": "#1e1e1e",
        "bg_secondary": "#252526",
        "text_primary": "#d4d4d4",
        "text_secondary": "#858585",
        "border_color": "#3e3e42",
        "primary_color": "#007acc",
    },
    "dracula": {
        "bg_primary": "#282a36",
        "bg_secondary": "#21222c",
        "text_primary": "#f8f8f2",
        "text_secondary": "#6272a4",
        "border_color": "#44475a",
        "primary_color": "#bd93f9",
    },
    "nord": {
        "bg_primary": "#2e3440",
        "bg_secondary": "#3b4252",
        "text_primary": "#eceff4",
        "text_secondary": "#d8dee9",
        "border_color": "#4c566a",
        "primary_color": "#88c0d0",
    },
    "solarized": {
        "bg_primary": "#fdf6e3",
        "bg_secondary": "#eee8d5",
        "text_primary": "#657b83",
        "text_secondary": "#93a1a1",
        "border_color": "#eee8d5",
        "primary_color": "#268bd2",
    },
}

FONTS: Dict[str, str] = {
    "system": "-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif",
    "serif": "Georgia, 'Times New Roman', Times, serif",
    "sans-serif": "Arial, Helvetica, 'Helvetica Neue', sans-serif",
    "monospace": "'Courier New', Courier, 'Lucida Console', Monaco, monospace",
}

CODE_THEMES: Dict[str, Dict[str, str]] = {
    "github": {"background": "#f6f8fa", "border": "#d0d7de", "color": "#24292f"},
    "monokai": {"background": "#272822", "border": "#3e3d32", "color": "#f8f8f2"},
    "dracula": {"background": "#282a36", "border": "#44475a", "color": "#f8f8f2"},
    "nord": {"background": "#2e3440", "border": "#3b4252", "color": "#d8dee9"},
    "atom-one-dark": {"background": "#282c34", "border": "#3e4451", "color": "#abb2bf"},
    "tomorrow-night": {"background": "#1d1f21", "border": "#373b41", "color": "#c5c8c6"},
}


def get_theme_css(theme_name: str = "default", font_family: str = "system", code_theme: str = "github") -> str:
    """Build the CSS custom property block for a theme combination.

    Unknown names fall back to the defaults.
    """
    theme = THEMES.get(theme_name, THEMES["default"])
    font = FONTS.get(font_family, FONTS["system"])
    code = CODE_THEMES.get(code_theme, CODE_THEMES["github"])

    return f"""
    :root {{
      --bg-primary: {theme['bg_primary']};
      --bg-secondary: {theme['bg_secondary']};
      --bg-sidebar: {theme['bg_secondary']};
      --text-primary: {theme['text_primary']};
      --text-secondary: {theme['text_secondary']};
      --border-color: {theme['border_color']};
      --primary-color: {theme['primary_color']};
      --code-background: {code['background']};
      --code-border: {code['border']};
      --code-color: {code['color']};
      --font-family: {font};
    }}
    body {{
      background: var(--bg-primary);
      color: var(--text-primary);
      font-family: var(--font-family);
    }}
    code {{
      background: var(--code-background);
      border: 1px solid var(--code-border);
      color: var(--code-color);
    }}
    pre code {{
      background: var(--code-background);
      color: var(--code-color);
    }}
"""
