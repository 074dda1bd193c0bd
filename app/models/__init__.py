# Users
from app.models.users.user_models import User

# Support
from app.models.support.category_models import Category
from app.models.support.complaint_models import Complaint, ComplaintStatusHistory, ComplaintNote
from app.models.support.activity_models import UserActivity
