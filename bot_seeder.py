"""
Demo profile generator for the admin seed action
Bots are ordinary users whose email ends with @bot.com; they like back instantly
"""

import random
from datetime import datetime

BOT_EMAIL_DOMAIN = '@bot.com'
BOT_PASSWORD = 'password123'
BOT_GENDER = 'Kadın'
BOT_BIO = 'Hayatı dolu dolu yaşayan, maceraperest bir ruh. ✈️📸 📍İstanbul'

FIRST_NAMES = [
    "Selin", "Elif", "Ayşe", "Fatma", "Zeynep", "Melis", "Deniz", "Ece", "Gizem", "Pelin",
    "Damla", "Gamze", "Buse", "Ceren", "Derya", "Ezgi", "İrem", "Kübra", "Merve", "Nazlı",
    "Özge", "Pınar", "Seda", "Sinem", "Tuğba", "Yağmur", "Leyla", "Bahar", "Aslı", "Didem",
    "Esra", "Funda", "Gözde", "Hande", "Işıl", "Jale", "Lale", "Mine", "Nihan", "Oya",
    "Sibel", "Yelda", "Zehra",
]
LAST_NAMES = [
    "Yılmaz", "Kaya", "Demir", "Çelik", "Şahin", "Öztürk", "Aydın", "Özdemir", "Arslan", "Doğan",
    "Kılıç", "Aslan", "Çetin", "Kara", "Koç", "Kurt", "Özkan", "Şimşek", "Polat", "Erdoğan",
    "Yıldız", "Yalçın",
]
HOBBIES = ["Müzik", "Seyahat", "Spor", "Sanat", "Dans", "Yemek", "Kitap", "Fotoğraf", "Doğa", "Moda", "Sinema", "Teknoloji"]
SMOKING = ["Sigara Kullanıyorum", "Sigara Kullanmıyorum", "Sosyal İçici"]
RELATIONSHIP_GOALS = ["Ciddi İlişki", "Sadece Eğlence", "Arkadaşlık", "Belirsiz", "Uzun Dönem"]

_UNSPLASH = "https://images.unsplash.com/photo-{}?ixlib=rb-1.2.1&auto=format&fit=crop&w=634&q=80"
PHOTO_POOL = [_UNSPLASH.format(photo_id) for photo_id in (
    "1529626455594-4ff0802cfb7e", "1494790108377-be9c29b29330", "1517841905240-472988babdf9",
    "1534528741775-53994a69daeb", "1524504388940-b1c1722653e1", "1506956191951-7a88da4435e5",
    "1524250502761-1ac6f2e30d43", "1531746020798-e6953c6e8e04", "1554151228-14d9def656ec",
    "1588953936179-d2a4734c5490", "1488426862026-3ee34a7d66df", "1517365830460-955ce3ccd263",
    "1464863979621-258859e62245", "1438761681033-6461ffad8d80", "1544005313-94ddf0286df2",
    "1500917293891-ef795e70e1f6", "1542596594-649edbc13630", "1532074205216-d0e1f4b87368",
)]

PHOTOS_PER_BOT = 6
VIP_PROBABILITY = 0.2


def is_bot_email(email):
    return bool(email) and email.endswith(BOT_EMAIL_DOMAIN)


def generate_bot(rng):
    """Build the column values for one bot user"""
    first = rng.choice(FIRST_NAMES)
    last = rng.choice(LAST_NAMES)
    username = f"{first.lower()}_{last.lower()}_{rng.randrange(100000)}"
    photos = rng.sample(PHOTO_POOL, PHOTOS_PER_BOT)
    hobbies = rng.sample(HOBBIES, 2)

    return {
        'username': username,
        'email': f"{username}{BOT_EMAIL_DOMAIN}",
        'full_name': f"{first} {last}",
        'bio': BOT_BIO,
        'avatar': photos[0],
        'is_verified': True,
        'is_member': rng.random() < VIP_PROBABILITY,
        'photos': photos,
        'liked_users': [],
        'seen_users': [],
        'blocked_users': [],
        'details': {
            'gender': BOT_GENDER,
            'hobbies': hobbies,
            'smoking': rng.choice(SMOKING),
            'relationshipGoal': rng.choice(RELATIONSHIP_GOALS),
        },
        'created_at': datetime.utcnow(),
    }


def generate_bots(count=100, rng=None):
    """Generate `count` bots with unique usernames and emails"""
    rng = rng or random.Random()
    bots = []
    seen = set()
    while len(bots) < count:
        bot = generate_bot(rng)
        if bot['username'] in seen:
            continue
        seen.add(bot['username'])
        bots.append(bot)
    return bots
