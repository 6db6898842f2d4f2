from django import forms


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class RefreshForm(forms.Form):
    refresh_token = forms.CharField()


class LogoutForm(forms.Form):
    refresh_token = forms.CharField(required=False)
