from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

class RegisterForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(max=80)])
    password = PasswordField('Password', validators=[DataRequired()])
    submit = SubmitField('Sign up')

class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired()])
    password = PasswordField('Password', validators=[DataRequired()])
    submit = SubmitField('Log in')

class QuoteForm(FlaskForm):
    text = TextAreaField('Quote', validators=[DataRequired()])
    author_name = StringField('Author', validators=[Optional(), Length(max=120)])
    submit = SubmitField('Post')

class CommentForm(FlaskForm):
    text = StringField('Add a comment', validators=[DataRequired()])
    submit = SubmitField('Reply')
