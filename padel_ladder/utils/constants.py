"""
Constants used across the matchmaking and rating system.
"""

# Matchmaking thresholds (rating points)
DUO_VS_DUO_MAX_DIFF = 300  # |avg(duo A) - avg(duo B)|
SOLO_MAX_SPREAD = 300  # max - min rating among four solos
SOLO_TEAM_MAX_DIFF = 200  # |team A avg - team B avg| for solo-formed teams
DUO_VS_SOLO_PAIR_MAX_DIFF = 250  # |duo avg - solo pair avg|

# Rating calculation
INITIAL_RATING = 1000
INITIAL_CATEGORY = "3ª"  # Category band of INITIAL_RATING
BASE_POINTS = 25
LOSER_POINTS_RATIO = 0.6  # loser base is 60% of the winner base
SCORE_MARGIN_PIVOT = 4  # margin at which the score multiplier is 1.0
SCORE_MARGIN_STEP = 0.05
SCORE_MULTIPLIER_MIN = 0.7
SCORE_MULTIPLIER_MAX = 1.5
RATING_DIFF_SCALE = 400
RATING_DIFF_WEIGHT = 0.3
RATING_MULTIPLIER_MIN = 0.6
RATING_MULTIPLIER_MAX = 1.6
DUO_WINNER_FACTOR = 0.85

# Provisional players
PROVISIONAL_GAMES = 5
PROVISIONAL_BONUS_HIGH_MARGIN = 7
PROVISIONAL_BONUS_MID_MARGIN = 4
PROVISIONAL_BONUS_HIGH = 1.8
PROVISIONAL_BONUS_MID = 1.5
PROVISIONAL_BONUS_LOW = 1.3

# Point clamps: (min, max)
WINNER_POINTS_RANGE = (10, 50)
WINNER_POINTS_RANGE_PROVISIONAL = (10, 80)
LOSER_POINTS_RANGE = (5, 35)
LOSER_POINTS_RANGE_PROVISIONAL = (5, 60)
MIN_RATING = 0

# League-local standings
LEAGUE_WIN_POINTS = 3
LEAGUE_LOSS_POINTS = 1

# Category bands: (exclusive upper bound, label); anything above the last bound is "1ª"
CATEGORY_BANDS = [
    (200, "Iniciante"),
    (400, "7ª"),
    (600, "6ª"),
    (800, "5ª"),
    (1000, "4ª"),
    (1200, "3ª"),
    (1400, "2ª"),
]
TOP_CATEGORY = "1ª"

# Scheduling
WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
PERIODS = ["morning", "afternoon", "evening"]
PERIOD_START_HOURS = {"morning": 9, "afternoon": 15, "evening": 19}
DEFAULT_PROPOSAL_HOUR = 19
TIME_PROPOSAL_COUNT = 3
TIME_PROPOSAL_MIN_DAYS_AHEAD = 2
TIME_PROPOSAL_SEARCH_DAYS = 21
NEGOTIATION_WINDOW_HOURS = 72
