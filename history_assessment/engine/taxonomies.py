"""
Assessment Taxonomies - Static classification data

Contains:
- History-taking categories (17 labels used by the classifier)
- Hypothesis abbreviation groups (for fuzzy hypothesis matching)
- Required-topic keyword maps (for completeness coverage)
- Rubric domain metadata and remediation-track priority
"""

# ==================== QUESTION CATEGORIES ====================

ROS_CATEGORIES = (
    'ROS_Constitutional',
    'ROS_Cardiovascular',
    'ROS_Respiratory',
    'ROS_GI',
    'ROS_GU',
    'ROS_Neuro',
    'ROS_MSK',
    'ROS_Skin',
    'ROS_Psych',
    'ROS_Other',
)

QUESTION_CATEGORIES = (
    'HPI',
    'PMH',
    'PSH',
    'Medications',
    'Allergies',
    'FamilyHistory',
    'SocialHistory',
) + ROS_CATEGORIES

QUESTION_TYPES = ('open', 'closed', 'leading')

DEFAULT_CATEGORY = 'HPI'
DEFAULT_QUESTION_TYPE = 'closed'

# Minimum HPI questions before systems review is considered earned
MIN_HPI_BEFORE_ROS = 3
# Only ROS this early in the encounter counts as premature
PREMATURE_ROS_WINDOW = 10

EARLY_WINDOW = 5


def is_ros(category: str) -> bool:
    return category.startswith('ROS_')


# ==================== HYPOTHESIS ABBREVIATIONS ====================

# Normalized (lower-case alphanumeric) forms that name the same diagnosis
HYPOTHESIS_ABBREVIATIONS = {
    'mi': ['myocardialinfarction', 'heartattack', 'stemi', 'nstemi'],
    'pe': ['pulmonaryembolism', 'pulmonaryembolus'],
    'gerd': ['gastroesophagealreflux', 'reflux', 'acidreflux'],
    'acs': ['acutecoronarysyndrome', 'unstableangina'],
    'copd': ['chronicobstructivepulmonarydisease'],
    'chf': ['congestiveheartfailure', 'heartfailure'],
    'dvt': ['deepveinthrombosis', 'deepvenousthrombosis'],
    'cad': ['coronaryarterydisease'],
    'msk': ['musculoskeletal'],
}


# ==================== TOPIC COVERAGE ====================

# Topic keyword -> categories whose presence covers the topic
TOPIC_CATEGORY_MAP = {
    'onset': ['HPI'],
    'location': ['HPI'],
    'character': ['HPI'],
    'severity': ['HPI'],
    'duration': ['HPI'],
    'aggravating': ['HPI'],
    'relieving': ['HPI'],
    'timing': ['HPI'],
    'associated': ['HPI'],
    'radiation': ['HPI'],
    'pmh': ['PMH'],
    'past medical': ['PMH'],
    'cardiac history': ['PMH'],
    'surgical': ['PSH'],
    'medication': ['Medications'],
    'allerg': ['Allergies'],
    'family': ['FamilyHistory'],
    'social': ['SocialHistory'],
    'smoking': ['SocialHistory'],
    'alcohol': ['SocialHistory'],
    'exercise': ['SocialHistory'],
    'occupation': ['SocialHistory'],
    'cardiac risk': ['PMH', 'FamilyHistory', 'SocialHistory'],
}

# Topics satisfied by any HPI question at all
HPI_GENERAL_TOPICS = ('chief complaint', 'pain characteristics')

# Topic key -> phrases that indicate the topic was asked about
TOPIC_KEYWORDS = {
    'nsaid_use': [
        'nsaid', 'ibuprofen', 'advil', 'motrin', 'aleve', 'naproxen',
        'aspirin', 'anti-inflammatory', 'pain killer', 'painkiller',
        'pain medication',
    ],
    'diet': [
        'diet', 'eat', 'food', 'meal', 'breakfast', 'lunch', 'dinner',
        'spicy', 'fatty', 'coffee', 'caffeine',
    ],
    'gi_alarm_symptoms': [
        'weight loss', 'blood in stool', 'black stool', 'melena',
        'vomiting blood', 'hematemesis', 'difficulty swallowing',
        'dysphagia', 'anemia', 'night sweats', 'fever',
    ],
    'red_flags': [
        'weight loss', 'fever', 'night sweats', 'weakness', 'numbness',
        'bowel', 'bladder', 'incontinence',
    ],
    'exercise_tolerance': [
        'exercise', 'walk', 'stairs', 'exertion', 'activity',
        'physical activity', 'blocks', 'flight',
    ],
    'orthopnea': ['pillow', 'lie flat', 'lying down', 'sleep', 'propped up'],
    'pnd': ['wake up', 'short of breath', 'night', 'breathless'],
    'edema': ['swelling', 'ankle', 'leg swell', 'feet swell', 'edema'],
}

# Words ignored when comparing a key discriminating question to student wording
STOP_WORDS = frozenset([
    'a', 'an', 'the', 'and', 'or', 'of', 'to', 'in', 'on', 'at', 'for',
    'with', 'is', 'are', 'was', 'were', 'be', 'been', 'do', 'does', 'did',
    'you', 'your', 'have', 'has', 'had', 'any', 'it', 'this', 'that',
    'there', 'what', 'when', 'where', 'how', 'which', 'who', 'can', 'could',
    'ever', 'about', 'me', 'tell', 'if', 'i', 'my', 'from', 'by', 'as',
])


# ==================== RUBRIC DOMAINS ====================

RUBRIC_DOMAINS = (
    'problemFraming',
    'discriminatingQuestioning',
    'sequencingStrategy',
    'responsiveness',
    'efficiencyRelevance',
    'dataSynthesis',
)

# Order used when picking (or repairing) the primary deficit domain
RUBRIC_DOMAIN_PRIORITY = (
    'discriminatingQuestioning',
    'problemFraming',
    'sequencingStrategy',
    'responsiveness',
    'efficiencyRelevance',
    'dataSynthesis',
)

RUBRIC_LEVELS = {
    1: 'Developing',
    2: 'Approaching',
    3: 'Meeting',
    4: 'Exceeding',
}

DOMAIN_METADATA = {
    'problemFraming': {
        'label': 'Problem Framing & Hypothesis Generation',
        'track': 'HypothesisAlignment',
        'focus': 'Generating a broad, prioritized differential early',
    },
    'discriminatingQuestioning': {
        'label': 'Discriminating Questioning',
        'track': 'HypothesisAlignment',
        'focus': 'Asking questions that separate competing diagnoses',
    },
    'sequencingStrategy': {
        'label': 'Sequencing & Strategy',
        'track': 'Organization',
        'focus': 'Logical flow from HPI through targeted systems review',
    },
    'responsiveness': {
        'label': 'Responsiveness to New Information',
        'track': 'HypothesisAlignment',
        'focus': 'Avoiding cognitive fixation and adapting when data conflict',
    },
    'efficiencyRelevance': {
        'label': 'Efficiency & Relevance',
        'track': 'Efficiency',
        'focus': 'Avoiding redundant or low-yield questions',
    },
    'dataSynthesis': {
        'label': 'Data Synthesis (Closure)',
        'track': 'Completeness',
        'focus': 'Summarizing and integrating findings',
    },
}


# ==================== OFFLINE CLASSIFICATION ====================

# Checked in order; first category with a keyword hit wins, else HPI
CATEGORY_KEYWORDS = (
    ('Allergies', ['allerg', 'reaction to']),
    ('Medications', ['medication', 'medicine', 'pills', 'prescri', 'taking any',
                     'ibuprofen', 'aspirin', 'supplement', 'over the counter']),
    ('PSH', ['surgery', 'surgeries', 'operation', 'operated']),
    ('FamilyHistory', ['family', 'mother', 'father', 'parents', 'sibling',
                       'brother', 'sister', 'runs in']),
    ('SocialHistory', ['smoke', 'smoking', 'cigarette', 'alcohol', 'drink', 'drugs',
                       'occupation', 'work', 'job', 'live with', 'exercise', 'diet']),
    ('PMH', ['medical history', 'medical conditions', 'diagnosed with', 'ever had',
             'history of', 'hospitalized', 'chronic']),
    ('ROS_Constitutional', ['fever', 'chills', 'weight loss', 'weight gain',
                            'night sweats', 'fatigue', 'tired']),
    ('ROS_Cardiovascular', ['palpitation', 'racing heart', 'swelling in your legs',
                            'ankle swelling', 'leg swelling']),
    ('ROS_Respiratory', ['cough', 'wheez', 'short of breath', 'shortness of breath',
                         'breathing', 'sputum']),
    ('ROS_GI', ['nausea', 'vomit', 'diarrhea', 'constipation', 'stool', 'bowel',
                'heartburn', 'swallow', 'appetite']),
    ('ROS_GU', ['urin', 'bladder', 'pee', 'menstrual', 'period']),
    ('ROS_Neuro', ['headache', 'dizz', 'numb', 'tingling', 'weakness', 'faint',
                   'vision', 'seizure']),
    ('ROS_MSK', ['joint', 'muscle', 'back pain', 'stiffness']),
    ('ROS_Skin', ['rash', 'skin', 'itch', 'bruis']),
    ('ROS_Psych', ['mood', 'anxious', 'anxiety', 'depress', 'stress', 'sleep']),
)

OPEN_QUESTION_STARTS = (
    'tell me', 'describe', 'can you describe', 'how would you describe',
    'what brings', 'what happened', 'how has', 'how does', 'how did',
    'what is it like', 'what was', 'walk me through', 'anything else',
)

LEADING_PATTERNS = (
    r"\b(?:isn't|aren't|don't|doesn't|didn't|wasn't|haven't) (?:it|you|that|there)\b.*\?$",
    r',\s*(?:right|correct)\?$',
    r'^i (?:assume|guess|bet)\b',
    r'^so you (?:must|probably)\b',
)

CLARIFYING_PHRASES = (
    'what do you mean', 'can you tell me more', 'tell me more', 'can you explain',
    'could you clarify', 'when you say', 'more about that', 'elaborate',
)

SUMMARIZING_PHRASES = (
    'so to summarize', 'to summarize', 'let me make sure', 'so you are saying',
    "so you're saying", 'if i understand', 'let me recap', 'just to confirm',
)
