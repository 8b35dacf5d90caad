"""
Alignment of gene and sample identifiers between tumor and normal data.
"""

from .errors import EmptySelectionError


def do_filter(set_a, set_b, allowed=None, paired=True):
    """Restrict two identifier collections to an allow-list.

    Parameters
    ----------
    set_a, set_b : sequence of str
        Identifiers observed in the two data sets (e.g. the gene or
        sample names of the tumor and the normal matrix).
    allowed : sequence of str, optional
        Identifiers of interest. None means every observed identifier.
    paired : bool
        If True, both selections are the sorted identifiers present in
        both restricted sets. If False, each set is restricted on its own
        and keeps its order.

    Returns
    -------
    (list, list)
        Selections for set_a and set_b.

    Raises
    ------
    EmptySelectionError
        If either selection is empty.
    """
    set_a = list(set_a)
    set_b = list(set_b)
    if allowed is None:
        allowed = set(set_a) | set(set_b)
    else:
        allowed = set(allowed)

    sel_a = [x for x in set_a if x in allowed]
    sel_b = [x for x in set_b if x in allowed]

    if paired:
        shared = sorted(set(sel_a) & set(sel_b))
        sel_a, sel_b = shared, list(shared)

    if len(sel_a) == 0 or len(sel_b) == 0:
        kind = "paired" if paired else "unpaired"
        raise EmptySelectionError(
            f"Empty {kind} selection ({len(sel_a)} and {len(sel_b)} identifiers remain)")
    return sel_a, sel_b
