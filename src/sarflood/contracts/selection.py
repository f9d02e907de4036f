"""Scene selection contract."""

from sarflood.contracts.base import require


def assert_scene_selected(selection, windows, orbits) -> None:
    """Enforce scene selection contract.

    The selected (window, orbit) pair must come from the configured search
    matrix, have at least one scene, and be the last attempt made.
    """
    require(
        selection.after_count >= 1,
        f"Selection contract violated: after_count is {selection.after_count}, expected >= 1"
    )
    require(
        selection.window_days in windows,
        f"Selection contract violated: window {selection.window_days} not in {list(windows)}"
    )
    require(
        selection.orbit_pass in orbits,
        f"Selection contract violated: orbit {selection.orbit_pass} not in {list(orbits)}"
    )
    require(
        len(selection.attempts) > 0
        and (selection.attempts[-1].window_days, selection.attempts[-1].orbit_pass)
        == (selection.window_days, selection.orbit_pass),
        "Selection contract violated: selected pair is not the last search attempt"
    )
    require(
        selection.after_start < selection.end_date,
        "Selection contract violated: window start is not before end date"
    )
