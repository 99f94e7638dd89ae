"""Payment QR image URLs for the invoice screen (VietQR quick links)."""

from urllib.parse import quote, urlencode

VIETQR_IMAGE_URL = 'https://img.vietqr.io/image/{bank_bin}-{account_number}-{template}.png'
DEFAULT_BANK_BIN = '970422'
DEFAULT_TEMPLATE = 'cdHGLoP'


def format_amount(amount) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)


def build_payment_qr_url(bank_bin: str, account_number: str,
                         account_name: str, amount, note: str,
                         template: str = DEFAULT_TEMPLATE) -> str:
    """
    Build the QR image URL for a bank transfer.

    Args:
        bank_bin (str): bank identification number (defaults to MB Bank)
        account_number (str): receiving account; no QR without one
        account_name (str): receiving account holder
        amount: amount to pre-fill, omitted unless positive
        note (str): transfer description

    Returns:
        The image URL, or '' if there is no account number.
    """

    if not account_number:
        return ''
    params = []
    if amount and amount > 0:
        params.append(('amount', format_amount(amount)))
    params.append(('addInfo', note or ''))
    params.append(('accountName', account_name or ''))
    url = VIETQR_IMAGE_URL.format(bank_bin=bank_bin or DEFAULT_BANK_BIN,
                                  account_number=account_number,
                                  template=template)
    query = urlencode(params, safe="!'()*", quote_via=quote)
    return f'{url}?{query}'
