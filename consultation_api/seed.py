"""Seed the default consultation services and weekly schedule.

Usage:
    python -m consultation_api.seed
"""
import logging
import sys

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from consultation_api.database import Base, SessionLocal, engine
from consultation_api.models.appointment import Appointment  # noqa: F401
from consultation_api.models.availability import AvailabilityRule
from consultation_api.models.consultation_type import ConsultationType

logger = logging.getLogger(__name__)

DEFAULT_SERVICES = [
    {
        'name': 'Consultation Personnalisée',
        'slug': 'consultation-personnalisee',
        'description': (
            'Décrivez vos besoins spécifiques pour un devis personnalisé. '
            'Idéal pour les projets sur-mesure uniques.'
        ),
        'price': 0,
        'duration': 60,
        'features': [
            'Écoute de vos besoins spécifiques',
            'Devis personnalisé après évaluation',
            'Solutions sur-mesure adaptées',
            'Suivi individualisé complet',
        ],
        'color': '#8b5cf6',
        'icon': 'sparkles',
        'enabled': True,
        'requires_payment': False,
        'sort_order': 1,
    },
    {
        'name': 'Analyse Morphologique',
        'slug': 'analyse-morphologique',
        'description': (
            'Découvrez votre morphologie et les coupes qui vous subliment. '
            'Recevez un guide personnalisé.'
        ),
        'price': 25000,
        'duration': 60,
        'features': [
            'Analyse complète de votre silhouette',
            'Conseils personnalisés de style',
            'Guide des coupes adaptées',
            'Rapport détaillé PDF',
        ],
        'color': '#f97316',
        'icon': 'user',
        'enabled': True,
        'requires_payment': True,
        'sort_order': 2,
    },
    {
        'name': 'Personal Shopping',
        'slug': 'personal-shopping',
        'description': 'Séance shopping accompagnée avec nos conseillères. On sélectionne, vous choisissez.',
        'price': 45000,
        'duration': 120,
        'features': [
            'Accompagnement shopping personnalisé',
            'Sélection pré-établie selon vos goûts',
            'Essayages conseillés',
            'Conseils style et tendances',
        ],
        'color': '#10b981',
        'icon': 'shopping-bag',
        'enabled': True,
        'requires_payment': True,
        'sort_order': 3,
    },
    {
        'name': 'Conseil Image Professionnelle',
        'slug': 'conseil-image-pro',
        'description': 'Optimisez votre image professionnelle. Idéal pour entrepreneurs et cadres.',
        'price': 35000,
        'duration': 90,
        'features': [
            'Audit de votre image actuelle',
            'Recommandations dress code professionnel',
            'Couleurs et styles adaptés à votre secteur',
            "Plan d'action personnalisé",
        ],
        'color': '#3b82f6',
        'icon': 'briefcase',
        'enabled': True,
        'requires_payment': True,
        'sort_order': 4,
    },
]

# Monday to Saturday, Saturday is a half day.
DEFAULT_AVAILABILITY = [
    {'day_of_week': 1, 'start_time': '09:00', 'end_time': '18:00'},
    {'day_of_week': 2, 'start_time': '09:00', 'end_time': '18:00'},
    {'day_of_week': 3, 'start_time': '09:00', 'end_time': '18:00'},
    {'day_of_week': 4, 'start_time': '09:00', 'end_time': '18:00'},
    {'day_of_week': 5, 'start_time': '09:00', 'end_time': '18:00'},
    {'day_of_week': 6, 'start_time': '09:00', 'end_time': '13:00'},
]
DEFAULT_SLOT_DURATION = 60
DEFAULT_BREAK_BETWEEN = 15


def seed_services(db: Session) -> int:
    for values in DEFAULT_SERVICES:
        service = db.query(ConsultationType).filter(ConsultationType.slug == values['slug']).first()
        if service is None:
            service = ConsultationType(slug=values['slug'])
            db.add(service)
        for field_name, value in values.items():
            setattr(service, field_name, value)
        logger.info('Created/updated service %s', values['name'])

    db.commit()
    return len(DEFAULT_SERVICES)


def seed_availability(db: Session) -> int:
    if db.query(AvailabilityRule).count() > 0:
        logger.info('Availability already configured, skipping')
        return 0

    for values in DEFAULT_AVAILABILITY:
        db.add(
            AvailabilityRule(
                **values,
                slot_duration=DEFAULT_SLOT_DURATION,
                break_between=DEFAULT_BREAK_BETWEEN,
                enabled=True,
            )
        )
    db.commit()

    logger.info('Created default availability (Mon-Sat)')
    return len(DEFAULT_AVAILABILITY)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format='%(levelname)s %(message)s')
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        seed_services(db)
        seed_availability(db)
    except SQLAlchemyError:
        db.rollback()
        logger.exception('Error seeding consultations')
        sys.exit(1)
    finally:
        db.close()


if __name__ == '__main__':
    main()
