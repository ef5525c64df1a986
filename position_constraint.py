# position_constraint.py

"""
Rectangle sweep tests that stop dragged elements from passing through each
other or through the burners.

All functions here are pure: they take rectangles and a proposed translation
and return the part of that translation that may happen.
"""

import constants
from geometry import Rect


def determine_allowed_translation(moving: Rect, stationary: Rect, proposed, restrict_pos_y=True):
    """
    Portion of a proposed (dx, dy) that moving may travel before hitting
    stationary.

    If the two already overlap and upward motion is restricted, the overlap is
    cured along whichever single axis needs the smaller correction. Otherwise
    the leading edge is swept along each axis and clamped just short of
    contact. With restrict_pos_y False, upward motion is never blocked.
    """
    proposed_x, proposed_y = proposed

    if moving.exclusive_intersects(stationary) and restrict_pos_y:
        x_cure = 0.0
        if moving.max_x >= stationary.min_x and moving.min_x <= stationary.min_x:
            x_cure = stationary.min_x - moving.max_x
        elif stationary.max_x >= moving.min_x and stationary.min_x <= moving.min_x:
            x_cure = stationary.max_x - moving.min_x

        y_cure = 0.0
        if moving.max_y >= stationary.min_y and moving.min_y <= stationary.min_y:
            y_cure = stationary.min_y - moving.max_y
        elif stationary.max_y >= moving.min_y and stationary.min_y <= moving.min_y:
            y_cure = stationary.max_y - moving.min_y

        assert not (x_cure == 0 and y_cure == 0), "Overlapping rectangles need a non-zero cure"

        if x_cure != 0 and abs(x_cure) < abs(y_cure):
            return x_cure, proposed_y
        return proposed_x, y_cure

    x_translation = proposed_x
    y_translation = proposed_y

    if proposed_x > 0:
        sweep = Rect(moving.max_x, moving.min_y, moving.max_x + proposed_x, moving.max_y)
        if sweep.exclusive_intersects(stationary):
            x_translation = stationary.min_x - moving.max_x - constants.MIN_INTER_ELEMENT_DISTANCE
    elif proposed_x < 0:
        sweep = Rect(moving.min_x + proposed_x, moving.min_y, moving.min_x, moving.max_y)
        if sweep.exclusive_intersects(stationary):
            x_translation = stationary.max_x - moving.min_x + constants.MIN_INTER_ELEMENT_DISTANCE

    if proposed_y > 0 and restrict_pos_y:
        sweep = Rect(moving.min_x, moving.max_y, moving.max_x, moving.max_y + proposed_y)
        if sweep.exclusive_intersects(stationary):
            y_translation = stationary.min_y - moving.max_y - constants.MIN_INTER_ELEMENT_DISTANCE
    elif proposed_y < 0:
        sweep = Rect(moving.min_x, moving.min_y + proposed_y, moving.max_x, moving.min_y)
        if sweep.exclusive_intersects(stationary):
            y_translation = stationary.max_y - moving.min_y + constants.MIN_INTER_ELEMENT_DISTANCE

    return x_translation, y_translation


def constrain_translation(moving_bounds: Rect, proposed_translation, obstacles, restrict_upward=None):
    """
    Applies determine_allowed_translation() against each obstacle in turn,
    each one seeing the translation already limited by those before it.

    restrict_upward, if given, holds one flag per obstacle. Without it every
    obstacle blocks upward motion.
    """
    translation = (float(proposed_translation[0]), float(proposed_translation[1]))
    for index, obstacle in enumerate(obstacles):
        restrict_pos_y = True if restrict_upward is None else restrict_upward[index]
        translation = determine_allowed_translation(moving_bounds, obstacle, translation, restrict_pos_y)
    return translation
