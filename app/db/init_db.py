from app.db.session import engine, Base
from app.models.project import Project
from app.models.testimonial import Testimonial

def init_db():
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created successfully!")

if __name__ == "__main__":
    init_db()
