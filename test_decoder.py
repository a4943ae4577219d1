"""
Usage:

Run in CLI, optionally restricted to one decoder kind:

    pytest test_decoder.py -v -s --decoder_kind=<kind>

where <kind> is one of gallager_a, gallager_b, sum_product, box_plus, min_sum.
"""

import itertools

import numpy as np
import pytest

from code_constructions import code_20_10, hamming_7_4, make_random_regular_ldpc
from mp_channels import BAWGNC, BSC
from mp_decoder import (
    DecoderKind,
    GallagerA,
    GallagerADecoder,
    GallagerB,
    MinSum,
    SumProduct,
    SumProductBoxPlus,
    SumProductDecoder,
    decode,
    make_decoder,
)
from mp_errors import ConfigurationError, DimensionError, DomainError
from mp_graph import build_graph
from mp_schedule import find_schedule

RECEIVED = np.array([1, 1, 0, 0, 0, 0, 0])
CODEWORD = np.array([1, 1, 1, 0, 0, 0, 0])


def is_gallager(kind):
    return isinstance(kind, (GallagerA, GallagerB))


def hamming_codewords():
    """All 16 codewords of the [7,4,3] Hamming code."""
    H = hamming_7_4()
    return [np.array(w) for w in itertools.product([0, 1], repeat=7) if not np.any(H @ w % 2)]


# -----------------------------
# End-to-end scenarios
# -----------------------------


def test_gallager_a_canonical_example(hamming):
    result = decode(hamming, RECEIVED, None, GallagerA(), max_iterations=100)
    assert result.success
    np.testing.assert_array_equal(result.decision, CODEWORD)
    assert result.soft is None


@pytest.mark.parametrize("kind", [SumProduct(), SumProductBoxPlus()], ids=["phi", "box_plus"])
def test_sum_product_single_flip(hamming, kind):
    result = decode(hamming, RECEIVED, BSC(1 / 7), kind, max_iterations=100)
    assert result.success
    np.testing.assert_array_equal(result.decision, CODEWORD)
    assert result.iterations_used == 2
    assert np.all((result.soft < 0) == CODEWORD.astype(bool))


def test_min_sum_attenuation_same_fixed_point(repetition5):
    y = np.array([1.0, 1.0, -1.2, 1.0, 1.0])
    chn = BAWGNC(0.8)
    full = decode(repetition5, y, chn, MinSum(attenuation=1.0), max_iterations=10)
    half = decode(repetition5, y, chn, MinSum(attenuation=0.5), max_iterations=10)
    assert full.success and half.success
    np.testing.assert_array_equal(full.decision, half.decision)
    np.testing.assert_array_equal(half.decision, np.zeros(5))
    assert full.iterations_used == 1
    assert half.iterations_used == 2


def test_matrix_input_builds_graph():
    result = decode(hamming_7_4(), RECEIVED, BSC(1 / 7), SumProduct())
    assert result.success
    np.testing.assert_array_equal(result.decision, CODEWORD)


# -----------------------------
# Properties, every decoder kind
# -----------------------------


def test_codeword_converges_in_one_iteration(hamming, decoder_kind):
    decoder = make_decoder(hamming, decoder_kind, BSC(0.1))
    for codeword in hamming_codewords():
        result = decoder.run(codeword, max_iterations=5)
        assert result.success
        assert result.iterations_used == 1
        np.testing.assert_array_equal(result.decision, codeword)


def test_noise_free_bpsk_converges_in_one_iteration(hamming, decoder_kind):
    if is_gallager(decoder_kind):
        pytest.skip("Gallager decoders take hard decisions only")
    y = 1.0 - 2.0 * CODEWORD
    y = y + np.array([0.3, -0.2, 0.4, -0.5, 0.1, 0.0, -0.3])  # signs unchanged
    result = decode(hamming, y, BAWGNC(0.7), decoder_kind, max_iterations=5)
    assert result.success
    assert result.iterations_used == 1
    np.testing.assert_array_equal(result.decision, CODEWORD)


def test_successful_decisions_satisfy_syndrome(decoder_kind):
    """Whenever a decoder reports success, H x = 0 mod 2."""
    rng = np.random.default_rng(17)
    for H in (code_20_10(), make_random_regular_ldpc(6, 12, 4, 2, rng=1)):
        graph = build_graph(H)
        chn = BSC(0.08)
        decoder = make_decoder(graph, decoder_kind, chn)
        for _ in range(30):
            received = chn.transmit(np.zeros(graph.num_vars, dtype=int), rng=rng)
            result = decoder.run(received, max_iterations=20)
            if result.success:
                assert graph.is_codeword(result.decision)
            else:
                assert result.iterations_used == 20


def test_frame_success_rate(decoder_kind):
    """Most low-noise frames of the [20,10] code decode back to the all-zero codeword."""
    rng = np.random.default_rng(0)
    graph = build_graph(code_20_10())
    chn = BSC(0.02)
    decoder = make_decoder(graph, decoder_kind, chn)
    num_trials = 300
    successes = 0
    iterations = []
    for _ in range(num_trials):
        received = chn.transmit(np.zeros(graph.num_vars, dtype=int), rng=rng)
        result = decoder.run(received, max_iterations=10)
        successes += int(result.success and not result.decision.any())
        iterations.append(result.iterations_used)
    rate = 100 * successes / num_trials
    assert rate >= 50, f"Frame success rate {rate:.1f}% too low for {decoder_kind}"
    print(f"{decoder_kind}: frame success {rate:.1f}%, avg iterations {np.mean(iterations):.2f}")


def test_decoder_is_reusable(hamming, decoder_kind):
    decoder = make_decoder(hamming, decoder_kind, BSC(1 / 7))
    first = decoder.run(RECEIVED, max_iterations=20)
    second = decoder.run(RECEIVED, max_iterations=20)
    assert first.success == second.success
    assert first.iterations_used == second.iterations_used
    np.testing.assert_array_equal(first.decision, second.decision)


# -----------------------------
# Extrinsic messages
# -----------------------------


def test_check_update_is_extrinsic(hamming):
    decoder = SumProductDecoder(hamming, BSC(0.1))
    rng = np.random.default_rng(9)
    v2c = rng.normal(0.0, 3.0, hamming.num_edges)
    c2v = decoder.check_update(v2c)
    for e in range(hamming.num_edges):
        changed = v2c.copy()
        changed[e] = -5.0 * changed[e] + 0.7
        assert decoder.check_update(changed)[e] == c2v[e]


def test_gallager_b_variable_update_is_extrinsic(hamming):
    decoder = make_decoder(hamming, GallagerB(threshold=1))
    obs = decoder.observe(RECEIVED)
    c2v = np.array([1, 0, 1, 0, 1, 1, 0, 1, 0, 1, 0, 1], dtype=np.int8)
    v2c = decoder.variable_update(obs, c2v)
    for e in range(hamming.num_edges):
        changed = c2v.copy()
        changed[e] ^= 1
        assert decoder.variable_update(obs, changed)[e] == v2c[e]


# -----------------------------
# Non-convergence
# -----------------------------


def test_exhausted_run_is_reported_not_raised(hamming):
    result = decode(hamming, RECEIVED, BSC(1 / 7), SumProduct(), max_iterations=1)
    assert not result.success
    assert result.iterations_used == 1
    np.testing.assert_array_equal(result.decision, RECEIVED)

    result = decode(hamming, RECEIVED, None, GallagerA(), max_iterations=2)
    assert not result.success
    assert result.iterations_used == 2


# -----------------------------
# Message history
# -----------------------------


def test_gallager_a_history(hamming):
    result = decode(hamming, RECEIVED, None, GallagerA(), max_iterations=100, keep_history=True)
    history = result.message_history
    assert len(history) == result.iterations_used

    v2c = history.var_to_check_matrix(1)
    assert v2c.shape == (7, 3)
    np.testing.assert_array_equal(v2c, hamming_7_4().T * RECEIVED[:, None])

    c2v = history.check_to_var_matrix(1)
    np.testing.assert_array_equal(
        c2v,
        [
            [1, 1, 0, 0, 0, 0, 0],
            [0, 0, 1, 1, 0, 1, 0],
            [0, 0, 1, 1, 0, 0, 1],
        ],
    )


def test_history_off_by_default(hamming):
    assert decode(hamming, RECEIVED, BSC(0.1), SumProduct()).message_history is None


def test_soft_history_matches_channel(hamming):
    chn = BSC(1 / 7)
    result = decode(hamming, RECEIVED, chn, SumProduct(), keep_history=True)
    first = result.message_history.var_to_check[0]
    np.testing.assert_allclose(first, chn.initial_values(RECEIVED)[hamming.edge_var])


# -----------------------------
# Layered schedule
# -----------------------------


def test_layered_sum_product(hamming):
    schedule = find_schedule(hamming)
    result = decode(hamming, RECEIVED, BSC(1 / 7), SumProduct(), schedule=schedule, keep_history=True)
    assert result.success
    assert result.iterations_used == 1
    np.testing.assert_array_equal(result.decision, CODEWORD)
    assert len(result.message_history) == 1


def test_single_group_layered_equals_flooding():
    graph = build_graph([[1, 1, 0, 0, 0], [0, 0, 1, 1, 1]])
    chn = BSC(0.2)
    received = np.array([1, 0, 0, 1, 1])
    flooding = decode(graph, received, chn, MinSum(0.8), max_iterations=1)
    layered = decode(graph, received, chn, MinSum(0.8), max_iterations=1, schedule=[[0, 1]])
    np.testing.assert_allclose(layered.soft, flooding.soft)
    np.testing.assert_array_equal(layered.decision, flooding.decision)


def test_layered_codewords(hamming, decoder_kind):
    if is_gallager(decoder_kind):
        with pytest.raises(ConfigurationError):
            decode(hamming, CODEWORD, None, decoder_kind, schedule=find_schedule(hamming))
        return
    result = decode(hamming, CODEWORD, BSC(0.1), decoder_kind, schedule=find_schedule(hamming))
    assert result.success and result.iterations_used == 1


def test_conflicting_schedule_rejected(hamming):
    with pytest.raises(ConfigurationError):
        decode(hamming, RECEIVED, BSC(0.1), SumProduct(), schedule=[[0, 1, 2]])


# -----------------------------
# Configuration errors
# -----------------------------


def test_gallager_rejects_continuous_channel(hamming):
    for kind in (GallagerA(), GallagerB()):
        with pytest.raises(ConfigurationError):
            decode(hamming, RECEIVED, BAWGNC(0.5), kind)


def test_soft_decoders_need_a_channel(hamming):
    for kind in (SumProduct(), SumProductBoxPlus(), MinSum()):
        with pytest.raises(ConfigurationError):
            decode(hamming, RECEIVED, None, kind)


def test_unknown_kind(hamming):
    class Flipping(DecoderKind):
        pass

    with pytest.raises(ConfigurationError):
        make_decoder(hamming, Flipping())


@pytest.mark.parametrize("threshold", [0, -1, 4])
def test_gallager_b_threshold_range(hamming, threshold):
    with pytest.raises(DomainError):
        make_decoder(hamming, GallagerB(threshold=threshold))


@pytest.mark.parametrize("attenuation", [0.0, -0.5, 1.01])
def test_min_sum_attenuation_range(attenuation):
    with pytest.raises(DomainError):
        MinSum(attenuation=attenuation)


def test_bad_inputs(hamming):
    with pytest.raises(DimensionError):
        decode(hamming, [1, 0, 1], BSC(0.1), SumProduct())
    with pytest.raises(DomainError):
        decode(hamming, [2, 0, 0, 0, 0, 0, 0], None, GallagerA())
    with pytest.raises(DomainError):
        decode(hamming, RECEIVED, BSC(0.1), SumProduct(), max_iterations=0)
    with pytest.raises(DomainError):
        decode(hamming, RECEIVED, BSC(0.1), SumProduct(), llr_max=-1.0)


def test_decoder_classes(hamming):
    assert isinstance(make_decoder(hamming, GallagerA()), GallagerADecoder)
    assert isinstance(make_decoder(hamming, SumProduct(), BSC(0.1)), SumProductDecoder)
