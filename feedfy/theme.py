"""
Community color presets (HSL "h s% l%" triples as CSS custom properties).
"""

from typing import Optional

DEFAULT_PRESET = 'slate'

COLOR_PRESETS = {
    'slate': {'name': 'Slate', 'primary': '217 23% 23%', 'secondary': '207 73% 57%', 'accent': '145 47% 51%'},
    'blue': {'name': 'Blue', 'primary': '217 91% 60%', 'secondary': '217 91% 60%', 'accent': '199 89% 48%'},
    'green': {'name': 'Green', 'primary': '142 76% 36%', 'secondary': '142 71% 45%', 'accent': '142 71% 45%'},
    'purple': {'name': 'Purple', 'primary': '262 83% 58%', 'secondary': '262 83% 58%', 'accent': '262 83% 58%'},
    'orange': {'name': 'Orange', 'primary': '24 95% 53%', 'secondary': '24 95% 53%', 'accent': '24 95% 53%'},
    'rose': {'name': 'Rose', 'primary': '346 77% 50%', 'secondary': '346 77% 50%', 'accent': '346 77% 50%'},
}


def apply_color_preset(preset: Optional[str]) -> dict[str, str]:
    """CSS variables for `preset`; unknown or empty presets fall back to slate"""
    config = COLOR_PRESETS.get(preset or '') or COLOR_PRESETS[DEFAULT_PRESET]
    variables = {'--primary': config['primary'], '--secondary': config['secondary']}
    if config.get('accent'):
        variables['--accent'] = config['accent']
    return variables


def render_theme_css(preset: Optional[str]) -> str:
    lines = [f'  {name}: {value};' for name, value in apply_color_preset(preset).items()]
    return ':root {\n' + '\n'.join(lines) + '\n}\n'


def get_current_preset(primary: Optional[str]) -> Optional[str]:
    """Reverse lookup of a preset by its --primary value"""
    primary = (primary or '').strip()
    for key, config in COLOR_PRESETS.items():
        if config['primary'] == primary:
            return key
    return None
