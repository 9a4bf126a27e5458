import json
from pathlib import Path

from locatorkit.__main__ import main

PAGE = """
<html><body>
  <section id="cart"><button class="remove">Remove</button></section>
  <button id="checkout">Checkout</button>
</body></html>
"""


def _page(tmp_path: Path) -> Path:
    path = tmp_path / "page.html"
    path.write_text(PAGE, encoding="utf-8")
    return path


def test_candidates_command_prints_ranked_json(tmp_path: Path, capsys) -> None:
    exit_code = main(["candidates", str(_page(tmp_path)), "--target", "#checkout"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload[0]["selector"] == "#checkout"
    assert payload[0]["unique"] is True


def test_candidates_command_with_scope_prints_locator_path(tmp_path: Path, capsys) -> None:
    exit_code = main(["candidates", str(_page(tmp_path)), "--target", "#cart button", "--scope", "#cart"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert payload["candidates"][0]["relation"] == "relative"
    assert payload["locatorPath"][0]["selector"] == "#cart"


def test_locate_command(tmp_path: Path, capsys) -> None:
    assert main(["locate", str(_page(tmp_path)), "--selector", 'text="Remove"']) == 0
    assert json.loads(capsys.readouterr().out) == {"tag": "button", "text": "Remove"}
    assert main(["locate", str(_page(tmp_path)), "--selector", "#nothing"]) == 1
