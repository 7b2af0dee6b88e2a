from datetime import datetime, date
from django.core.paginator import Paginator


def get_financial_year(value):
    """
    Get financial year from a given date.
    Financial year is considered from April (4) to March (3).

    Args:
        value (str | datetime | date): Input date. If string,
                                       accepted formats include "YYYY-MM-DD",
                                       "DD/MM/YYYY", "DD-MM-YYYY".

    Returns:
        str: Financial year in format 'YY-YY' (e.g. '24-25')

    Raises:
        ValueError: If the input cannot be parsed as a valid date.
    """
    if isinstance(value, str):
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"):
            try:
                parsed_date = datetime.strptime(value, fmt).date()
                break
            except ValueError:
                continue
        else:
            raise ValueError(f"Unrecognized date format: {value}")
    elif isinstance(value, datetime):
        parsed_date = value.date()
    elif isinstance(value, date):
        parsed_date = value
    else:
        raise ValueError("Input must be a string, datetime, or date object")

    if parsed_date.month >= 4:
        start_year = parsed_date.year
    else:
        start_year = parsed_date.year - 1

    return f"{str(start_year)[2:]}-{str(start_year + 1)[2:]}"


class StringProcessor:
    """
    Cleans free-text names (collapses whitespace, strips slashes, question
    marks and commas) and converts them to different cases. None becomes an
    empty string.
    """

    def __init__(self, input_string=None):
        if input_string is None:
            self.input_string = ""
            self.cleaned_string = ""
        else:
            self.input_string = input_string
            self.clean()

    def clean(self):
        cleaned_string = " ".join(str(self.input_string).split())
        cleaned_string = (
            cleaned_string.replace("/", "").replace("?", "").replace(",", "")
        )
        self.cleaned_string = cleaned_string.upper()

    def toUppercase(self):
        return self.cleaned_string

    def toLowercase(self):
        return self.cleaned_string.lower()

    def toTitle(self):
        """
        Returns the cleaned string in title case (first letter of each word capitalized).
        """
        return self.cleaned_string.title()


def paginate(queryset, page=1, per_page=20, serializer=None):
    """
    Paginate a queryset into a plain dictionary.

    Args:
        queryset: List/QuerySet to paginate
        page: 1-based page number; out of range values clamp to the last page
        per_page: Number of items per page
        serializer: Optional callable applied to each row

    Returns:
        dict with items, total, page, page_size and total_pages
    """
    paginator = Paginator(queryset, per_page)
    page_obj = paginator.get_page(page)
    rows = list(page_obj.object_list)
    if serializer:
        rows = [serializer(row) for row in rows]

    return {
        "items": rows,
        "total": paginator.count,
        "page": page_obj.number,
        "page_size": per_page,
        "total_pages": paginator.num_pages,
    }
