"""
End-of-run normalisation of the cross-section accumulators.
"""

import logging

logger = logging.getLogger(__name__)

# multiply to convert to picobarn
UNIT_TO_PB = {
    "fb": 1e-3,
    "pb": 1.0,
    "nb": 1e3,
    "ub": 1e6,
    "mb": 1e9,
}


def to_picobarn(value, unit="pb"):
    try:
        return value * UNIT_TO_PB[unit]
    except KeyError:
        raise ValueError(
            f"Unknown cross-section unit '{unit}', expected one of {sorted(UNIT_TO_PB)}"
        ) from None


def normalization_factor(cross_section_pb, sum_of_weights):
    """
    Scale converting weighted event counts into a cross section [pb].

    Falls back to 1.0 when no event weight has been accumulated.
    """
    if sum_of_weights != 0:
        return cross_section_pb / sum_of_weights
    return 1.0


def normalize(histograms, cross_section_pb, sum_of_weights):
    """
    Scale the WW, WZ and ZZ accumulators in place.

    Returns
    -------
    float
        The factor that was applied.
    """
    norm = normalization_factor(cross_section_pb, sum_of_weights)
    logger.info(
        "Normalising to sigma = %g pb over sum of weights %g (factor %g)",
        cross_section_pb,
        sum_of_weights,
        norm,
    )
    histograms.scale(norm)
    return norm
