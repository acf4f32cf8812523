import html
import re

# <@U123>, <#C123|general>, <!here>, <https://example.com|label>
_MARKUP = re.compile(r"<(?P<sign>[?@#!]?)(?P<body>.*?)>", re.DOTALL)
_DOUBLE_QUOTES = re.compile("[“”]")
_SINGLE_QUOTES = re.compile("[‘’]")

STYLES = {
    'bold':  '1',
    'dim':   '2',
    'green': '32',
    'blue':  '34',
    'cyan':  '36',
    'gray':  '90',
}
RESET = '\033[0m'


def _replace_markup(m: re.Match) -> str:
    sign = m.group("sign")
    label = m.group("body").split("|", 1)[-1]
    if sign in ("@", "!"):
        return "@" + label
    if sign == "#":
        return "#" + label
    return label


def unescape(text: str) -> str:
    """Turn Slack message markup into the plain text a reader would see."""
    text = _DOUBLE_QUOTES.sub('"', text)
    text = _SINGLE_QUOTES.sub("'", text)
    text = _MARKUP.sub(_replace_markup, text)
    return html.unescape(text)


def paint(text: str, *styles: str, enabled: bool = True) -> str:
    """Wrap *text* in ANSI SGR codes; a no-op when *enabled* is false."""
    if not enabled or not styles:
        return text
    codes = ";".join(STYLES[s] for s in styles)
    return f"\033[{codes}m{text}{RESET}"
