from db import ExerciseRepository


WARM_UPS = [
    ("Arm circles", "shoulders", "Arms out to the sides. Small circles, then larger. 30 seconds.", 1, 1, []),
    ("Leg swings", "hips", "Hold a wall and swing one leg forward and back. 30 seconds each leg.", 1, 1, ["hip", "knee"]),
    ("Bodyweight squats", "legs", "Chest up, knees pushed out.", 10, 10, ["knee", "back"]),
    ("Push-up to down dog", "full", "Push up, then drive the hips back into down dog.", 5, 5, ["shoulder", "wrist"]),
    ("Jumping jacks", "cardio", "30 seconds to raise the heart rate.", 1, 1, ["knee"]),
    ("Light stretch", "full", "One minute across chest, shoulders and legs.", 1, 1, []),
]

# (name, muscle group, equipment, base % of body weight, increment kg, sets, reps, rest, skip areas, instructions)
WORKOUTS = {
    "A": [
        ("Smith Machine Bench Press", "chest", "smith_machine", 0.30, 2.5, 3, (8, 12), 90, ["shoulder", "wrist"],
         "Lie on the bench with the grip slightly wider than the shoulders. Lower to the chest, press up."),
        ("Smith Machine Incline Bench Press", "chest", "smith_machine", 0.25, 2.5, 3, (8, 12), 90, ["shoulder", "wrist"],
         "Bench at 30-45 degrees. Press as on the flat bench; works the upper chest."),
        ("Dumbbell Shoulder Press", "shoulders", "dumbbell", 0.10, 1.0, 3, (8, 12), 90, ["shoulder"],
         "Seated or standing. Press the dumbbells overhead from shoulder height."),
        ("Arnold Press", "shoulders", "dumbbell", 0.08, 1.0, 3, (8, 12), 90, ["shoulder"],
         "Start palms in and rotate out as you press. Go lighter than the regular press."),
        ("Dumbbell Tricep Extension", "triceps", "dumbbell", 0.06, 1.0, 3, (8, 12), 60, ["elbow", "wrist"],
         "One arm or two. Lower the dumbbell behind the head, extend up."),
        ("Lateral Raise", "shoulders", "dumbbell", 0.04, 1.0, 3, (10, 12), 60, ["shoulder"],
         "Arms at the sides, raise to shoulder height. Control the way down."),
    ],
    "B": [
        ("Smith Machine Bent-Over Row", "back", "smith_machine", 0.25, 2.5, 3, (8, 12), 90, ["back"],
         "Hinge at the hips and pull the bar to the lower chest. Squeeze the shoulder blades."),
        ("Chest-Supported Dumbbell Row", "back", "dumbbell", 0.12, 1.0, 3, (8, 12), 90, [],
         "Chest on an incline bench, row the dumbbells to the hips. The bench supports the back."),
        ("Dumbbell Bicep Curl", "biceps", "dumbbell", 0.06, 1.0, 3, (8, 12), 60, ["elbow", "wrist"],
         "Arms at the sides, curl up. Keep the elbows still."),
        ("Smith Machine Shrug", "traps", "smith_machine", 0.25, 2.5, 3, (10, 12), 60, ["neck"],
         "Bar at arm's length. Shrug the shoulders up and back."),
        ("Hammer Curl", "biceps", "dumbbell", 0.06, 1.0, 3, (8, 12), 60, ["elbow", "wrist"],
         "Neutral grip, palms facing in. Curl both arms; easier on the wrists."),
        ("Band or Cable Face Pull", "rear_delts", "dumbbell", 0.04, 1.0, 3, (12, 15), 60, ["shoulder"],
         "Pull to face level. Without a cable, do a bent-over reverse fly with light dumbbells."),
    ],
    "C": [
        ("Smith Machine Squat", "legs", "smith_machine", 0.40, 2.5, 3, (8, 12), 90, ["knee", "back"],
         "Bar on the upper back. Squat to parallel or below with knees tracking over the toes."),
        ("Smith Machine Leg Press", "legs", "smith_machine", 0.50, 2.5, 3, (8, 12), 90, ["knee", "back"],
         "Feet on the platform, lower and press with the back supported. A hack squat works too."),
        ("Dumbbell Walking Lunge", "legs", "dumbbell", 0.07, 1.0, 3, (8, 10), 90, ["knee", "hip"],
         "Dumbbells at the sides. Lunge forward, alternating legs."),
        ("Dumbbell Step-Up", "legs", "dumbbell", 0.07, 1.0, 3, (8, 10), 60, ["knee", "hip"],
         "Step onto a bench or box with one leg and drive up. Alternate legs."),
        ("Romanian Deadlift (Dumbbell)", "hamstrings", "dumbbell", 0.12, 1.0, 3, (8, 12), 90, ["back"],
         "Slight knee bend, hinge at the hips. Lower the dumbbells along the legs until the hamstrings stretch."),
        ("Plank", "core", "bodyweight", 0.0, 0.0, 2, (1, 1), 60, ["back"],
         "Forearms on the floor, hold 30-60 seconds. Keep the hips level."),
    ],
}

SUBSTITUTES = [
    ("Dumbbell Shoulder Press", "Arnold Press"),
    ("Smith Machine Bent-Over Row", "Chest-Supported Dumbbell Row"),
    ("Dumbbell Walking Lunge", "Dumbbell Step-Up"),
]


def seed(exercises: ExerciseRepository) -> int:
    """Insert the exercise catalog once; return the number of rows added."""
    if exercises.count():
        return 0
    ids: dict[str, int] = {}
    for order, (name, group, notes, reps_min, reps_max, skip) in enumerate(WARM_UPS):
        ids[name] = exercises.add(
            name,
            group,
            "bodyweight",
            instructions=notes,
            order_in_workout=order,
            sets=1,
            reps_min=reps_min,
            reps_max=reps_max,
            rest_secs=0,
            is_warm_up=True,
            warm_up_order=order,
            injury_areas=skip,
        )
    for workout_type, rows in WORKOUTS.items():
        for order, (name, group, equipment, pct, inc, sets, reps, rest, skip, notes) in enumerate(rows):
            ids[name] = exercises.add(
                name,
                group,
                equipment,
                instructions=notes,
                base_weight_percent=pct,
                weight_increment_kg=inc,
                workout_type=workout_type,
                order_in_workout=order,
                sets=sets,
                reps_min=reps[0],
                reps_max=reps[1],
                rest_secs=rest,
                injury_areas=skip,
            )
    for first, second in SUBSTITUTES:
        exercises.link_substitutes(ids[first], ids[second])
    return len(ids)


if __name__ == "__main__":
    count = seed(ExerciseRepository())
    print(f"Seeded {count} exercises" if count else "Exercise catalog already seeded")
