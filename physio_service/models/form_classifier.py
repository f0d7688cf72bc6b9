"""
PHYSIOTRACK Physio Service - Form Classifier

Stateless angle-to-label mapping, re-evaluated on every accepted frame.
"""

from .exercise_profiles import ExerciseProfile, get_profile


def classify_profile(profile: ExerciseProfile, angle: float) -> str:
    """First matching rule wins; otherwise the profile's fallback label."""
    for rule in profile.form_rules:
        if rule.matches(angle):
            return rule.label
    return profile.fallback_label


def classify_form(exercise_id: str, angle: float) -> str:
    """
    Map an angle to a human-readable form label for an exercise.

    Exercises without a registered profile use the default rule:
    "Check form" outside (30, 170), "Good" otherwise.
    """
    return classify_profile(get_profile(exercise_id), angle)
