from datetime import date
from .extensions import db
from .models import ExternalOffice, CV
from . import create_app

def run():
    app = create_app()
    with app.app_context():
        db.create_all()
        if not ExternalOffice.query.first():
            db.session.add(ExternalOffice(office_name='مكتب أديس للاستقدام', country='ethiopia', code='ADD-01'))
            db.session.add(ExternalOffice(office_name='مكتب نيروبي', country='kenya', code='NBO-01'))
            db.session.flush()
        if not CV.query.first():
            office = ExternalOffice.query.filter_by(country='ethiopia').first()
            db.session.add(CV(worker_name='ألماز تسفاي', passport_number='EP1234567',
                              date_of_birth=date(1998, 3, 14), nationality='ethiopia',
                              profession='housemaid', salary=1000, medical_exam_date=date.today(),
                              musaned_status='uploaded', external_office_status='ready',
                              external_office_id=office.id))
        db.session.commit()

if __name__ == '__main__':
    run()
