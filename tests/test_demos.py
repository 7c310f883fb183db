import pytest

from demos import DEMOS, demo_names, get_demo
from interpreter import Interpreter


@pytest.mark.parametrize("name", demo_names())
def test_demo_prints_expected_output(name):
    demo = DEMOS[name]
    out = []
    Interpreter(source=demo.source, output_sink=out.append).run()
    assert tuple(int(text) for text in out) == demo.expected


def test_unknown_demo():
    with pytest.raises(KeyError, match="available"):
        get_demo("hanoi")
