from flask_wtf import FlaskForm
from wtforms import StringField, SubmitField
from wtforms.validators import DataRequired, Length


class VerificationForm(FlaskForm):
    verification_code = StringField(
        "Verification code",
        validators=[DataRequired(), Length(max=128)],
    )
    submit = SubmitField("Verify")
