"""
Search-term catalogs used for cache warming.
"""

# Popular ingredients to pre-cache, most requested first
POPULAR_TERMS = [
    # Proteins
    "chicken breast",
    "ground beef",
    "chicken thighs",
    "bacon",
    "eggs",
    "salmon",
    "shrimp",
    "pork chops",
    "ground turkey",
    "sausage",

    # Dairy
    "milk",
    "butter",
    "cheddar cheese",
    "cream cheese",
    "sour cream",
    "heavy cream",
    "parmesan cheese",
    "mozzarella cheese",
    "greek yogurt",

    # Produce
    "onion",
    "garlic",
    "tomatoes",
    "potatoes",
    "carrots",
    "celery",
    "bell pepper",
    "broccoli",
    "spinach",
    "lettuce",
    "mushrooms",
    "lemon",
    "lime",

    # Fruits
    "bananas",
    "apples",
    "strawberries",
    "blueberries",

    # Pantry
    "olive oil",
    "vegetable oil",
    "all purpose flour",
    "sugar",
    "brown sugar",
    "salt",
    "black pepper",
    "rice",
    "pasta",
    "bread",
    "chicken broth",
    "beef broth",
    "canned tomatoes",
    "tomato paste",
    "soy sauce",
]

# Warmed first on demand, with a shorter delay.
# Not a strict subset of POPULAR_TERMS ("cheese").
ESSENTIAL_TERMS = [
    "chicken breast",
    "ground beef",
    "eggs",
    "milk",
    "butter",
    "onion",
    "garlic",
    "olive oil",
    "cheese",
    "bread",
]


def remaining_terms(essentials=ESSENTIAL_TERMS, catalog=POPULAR_TERMS):
    """Popular terms not already covered by the essentials, in catalog order."""
    covered = set(essentials)
    return [term for term in catalog if term not in covered]
