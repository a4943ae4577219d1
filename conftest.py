import pytest

from code_constructions import hamming_7_4, make_repetition
from mp_decoder import GallagerA, GallagerB, MinSum, SumProduct, SumProductBoxPlus
from mp_graph import build_graph

DECODER_KINDS = {
    "gallager_a": GallagerA(),
    "gallager_b": GallagerB(threshold=2),
    "sum_product": SumProduct(),
    "box_plus": SumProductBoxPlus(),
    "min_sum": MinSum(attenuation=0.75),
}


def pytest_addoption(parser):
    parser.addoption(
        "--decoder_kind",
        action="store",
        default="all",
        help=f"Decoder kind to test: all or one of {', '.join(DECODER_KINDS)}",
    )


def pytest_generate_tests(metafunc):
    if "decoder_kind" not in metafunc.fixturenames:
        return
    choice = metafunc.config.getoption("decoder_kind")
    if choice == "all":
        names = list(DECODER_KINDS)
    elif choice in DECODER_KINDS:
        names = [choice]
    else:
        raise pytest.UsageError(f"unknown --decoder_kind {choice!r}")
    metafunc.parametrize("decoder_kind", [DECODER_KINDS[n] for n in names], ids=names)


@pytest.fixture(scope="module")
def hamming():
    """[7,4,3] Hamming code Tanner graph."""
    return build_graph(hamming_7_4())


@pytest.fixture(scope="module")
def repetition5():
    """5-bit repetition code Tanner graph."""
    return build_graph(make_repetition(5))
